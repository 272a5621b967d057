"""
Pattern-based extraction of part and model numbers from free text.
"""
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from partassist.core.models import ConversationTurn

# PS followed by 8 digits, or a bare 8-digit number
PART_PATTERN = re.compile(r"\b(PS\d{8})\b|\b(\d{8})\b", re.IGNORECASE)
# 3 letters + 3-7 digits + 3+ alphanumerics, e.g. WDT780SAEM1
MODEL_PATTERN = re.compile(r"[A-Z]{3}\d{3,7}[A-Z0-9]{3,}", re.IGNORECASE)

# Looser variants for the product search quick-parse
SEARCH_PART_PATTERN = re.compile(r"\bPS\d{6,8}\b", re.IGNORECASE)
SEARCH_MODEL_PATTERN = re.compile(r"[A-Z]{3}\d{3,7}[A-Z0-9]{2,}", re.IGNORECASE)

HISTORY_TURNS = 3


@dataclass
class PartEntities:
    part_number: Optional[str] = None
    model_number: Optional[str] = None


def extract_part_number(text: str) -> Optional[str]:
    match = PART_PATTERN.search(text or "")
    if not match:
        return None
    return (match.group(1) or match.group(2)).upper()


def extract_model_number(text: str) -> Optional[str]:
    match = MODEL_PATTERN.search(text or "")
    return match.group(0).upper() if match else None


def extract_entities(text: str) -> PartEntities:
    return PartEntities(part_number=extract_part_number(text), model_number=extract_model_number(text))


def extract_from_history(history: Sequence[ConversationTurn], turns: int = HISTORY_TURNS) -> PartEntities:
    """
    Identifiers the user typed in the last few turns.

    Assistant turns are skipped: their example identifiers ("e.g. WDT780SAEM1")
    would otherwise be picked up as if the user had given them.
    """
    recent = " ".join(turn.content for turn in list(history)[-turns:] if turn.role == "user")
    return extract_entities(recent)

"""
Intent router: cheap pattern rules first, provider classification otherwise.
Classification never raises; any provider or parse failure yields the default
low-confidence general_question intent.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from pydantic import ValidationError

from partassist.agents.triage.prompts import HISTORY_BLOCK, TRIAGE_PROMPT, TRIAGE_SYSTEM_PROMPT
from partassist.core.errors import ClassificationParseError, ProviderUnavailable
from partassist.core.models import CompletionConfig, ConversationTurn, FlowContext, Intent, IntentName, OutputFormat
from partassist.llm.client import ResilientCompletionClient
from partassist.orchestrator.flow import analyze_flow
from partassist.utils.logger import get_logger
from partassist.utils.parsing import loads_object

logger = get_logger(__name__)

QUESTIONING_PATTERN = re.compile(r"^(should|would|could|can|do i|is it|what if|what about)\b", re.IGNORECASE)

# Short greetings / chitchat that never need a provider call
GREETING_PHRASES = frozenset({
    "hi", "hey", "hello", "hey there", "hi there", "hello there",
    "good morning", "good afternoon", "good evening", "thanks", "thank you",
})

CONTEXT_TURNS = 5
CONTEXT_CHARS = 150


def default_intent() -> Intent:
    return Intent(primary=IntentName.GENERAL_QUESTION, confidence=0.5, entities={})


@dataclass(frozen=True)
class FastPathRule:
    name: str
    matches: Callable[[str, FlowContext], bool]
    primary: IntentName
    confidence: float
    entities: Dict[str, Any] = field(default_factory=dict)

    def to_intent(self) -> Intent:
        return Intent(primary=self.primary, confidence=self.confidence, entities=dict(self.entities))


def _is_troubleshooting_follow_up(text: str, flow: FlowContext) -> bool:
    return bool(QUESTIONING_PATTERN.match(text)) and flow.topic == "troubleshooting"


def is_greeting(text: str, flow: Optional[FlowContext] = None) -> bool:
    return text.lower().strip(" !.?,") in GREETING_PHRASES


# Evaluated top to bottom, first match wins
FAST_PATH_RULES: Tuple[FastPathRule, ...] = (
    FastPathRule(
        name="troubleshooting_follow_up",
        matches=_is_troubleshooting_follow_up,
        primary=IntentName.GENERAL_QUESTION,
        confidence=0.85,
        entities={"is_follow_up": True, "context": "troubleshooting"},
    ),
    FastPathRule(
        name="greeting",
        matches=is_greeting,
        primary=IntentName.GENERAL_QUESTION,
        confidence=0.9,
    ),
)


def match_fast_path(utterance: str, flow: FlowContext) -> Optional[Intent]:
    text = utterance.strip()
    for rule in FAST_PATH_RULES:
        if rule.matches(text, flow):
            logger.info(f"⚡ TRIAGE: fast path '{rule.name}' matched, skipping provider")
            return rule.to_intent()
    return None


def parse_intent(raw: str) -> Intent:
    """
    Parse the provider's structured output.

    Raises:
        ClassificationParseError: not JSON, not an object, or not a known intent
    """
    try:
        data = loads_object(raw)
    except ValueError as e:
        raise ClassificationParseError(f"unreadable classifier output: {e}") from e

    confidence = data.get("confidence", 0.7)
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        data["confidence"] = min(1.0, max(0.0, float(confidence)))
    if data.get("entities") is None:
        data["entities"] = {}

    try:
        return Intent.model_validate(data)
    except ValidationError as e:
        raise ClassificationParseError(f"invalid intent payload: {e}") from e


def build_triage_prompt(utterance: str, history: Sequence[ConversationTurn]) -> str:
    recent = list(history)[-CONTEXT_TURNS:]
    block = ""
    if recent:
        lines = "\n".join(f"{turn.role}: {turn.content[:CONTEXT_CHARS]}" for turn in recent)
        block = HISTORY_BLOCK.format(lines=lines)
    return TRIAGE_PROMPT.format(message=utterance, history=block)


class IntentRouter:

    def __init__(self, client: ResilientCompletionClient):
        self.client = client

    async def classify(
        self,
        utterance: str,
        history: Sequence[ConversationTurn],
        flow: Optional[FlowContext] = None,
    ) -> Intent:
        logger.info(f"🔍 TRIAGE: Analyzing message: '{utterance[:100]}'")
        flow = flow or analyze_flow(history)

        intent = match_fast_path(utterance, flow)
        if intent is not None:
            return intent

        prompt = build_triage_prompt(utterance, history)
        try:
            raw = await self.client.complete(
                prompt,
                [],
                CompletionConfig(
                    system_prompt=TRIAGE_SYSTEM_PROMPT,
                    temperature=0.3,
                    max_tokens=200,
                    output_format=OutputFormat.STRUCTURED_JSON,
                ),
            )
        except ProviderUnavailable as e:
            logger.error(f"❌ TRIAGE: provider unavailable, using default intent: {e}")
            return default_intent()

        try:
            intent = parse_intent(raw)
        except ClassificationParseError as e:
            logger.warning(f"Failed to parse classifier output: {e}")
            logger.debug(f"Classifier output was: {(raw or '')[:200]}")
            return default_intent()

        logger.info(f"✅ TRIAGE: intent={intent.primary.value}, confidence={intent.confidence}")
        return intent

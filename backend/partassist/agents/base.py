"""
Domain handler interface and the intent -> handler lookup table.
"""
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from partassist.core.errors import PartAssistError
from partassist.core.models import AgentResponse, ConversationTurn, IntentName, SessionContext
from partassist.llm.client import ResilientCompletionClient
from partassist.storage.catalog import ProductCatalog

# Failures of the provider, cache and store that handlers degrade on
DOWNSTREAM_ERRORS = (PartAssistError, SQLAlchemyError)


class DomainHandler(ABC):
    """
    One handler per intent. ``handle`` returns an AgentResponse and may update
    ``context`` in place; the orchestrator persists it after the call.
    """

    name: str = "handler"

    def __init__(self, client: ResilientCompletionClient, catalog: ProductCatalog):
        self.client = client
        self.catalog = catalog

    @abstractmethod
    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        ...


def format_history(history: Sequence[ConversationTurn], turns: int, separator: str = "\n") -> str:
    return separator.join(f"{turn.role}: {turn.content}" for turn in list(history)[-turns:])


def check_registry(handlers: Mapping[IntentName, DomainHandler]) -> None:
    """Every intent must have exactly one handler registered."""
    missing = [intent.value for intent in IntentName if intent not in handlers]
    if missing:
        raise ValueError(f"No handler registered for intents: {', '.join(missing)}")

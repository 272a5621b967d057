from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional, Sequence

from partassist.agents.base import DomainHandler
from partassist.agents.registry import build_handlers
from partassist.agents.triage.agent import IntentRouter
from partassist.core.config import Settings, settings as default_settings
from partassist.core.models import ConversationTurn, IntentName, ResponseEnvelope, ResponseMetadata
from partassist.llm.client import create_completion_client
from partassist.orchestrator.graph import build_graph
from partassist.orchestrator.guard import APOLOGY_MESSAGE
from partassist.utils.locks import KeyedLocks
from partassist.storage.cache import KeyValueCache, create_cache
from partassist.storage.catalog import ProductCatalog, create_catalog
from partassist.storage.session_context import SessionContextStore
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class Orchestrator:
    """
    Runs one chat turn: classify, merge session context, dispatch to a
    handler, persist context, shape the response envelope.
    """

    def __init__(
        self,
        router: IntentRouter,
        handlers: Mapping[IntentName, DomainHandler],
        session_store: SessionContextStore,
        serialize_per_user: bool = True,
    ):
        self.router = router
        self.handlers = handlers
        self.session_store = session_store
        self.graph = build_graph(router, handlers, session_store)
        self.user_locks = KeyedLocks() if serialize_per_user else None

    @asynccontextmanager
    async def _turn_lock(self, user_id: str) -> AsyncIterator[None]:
        if self.user_locks is None:
            yield
            return
        async with self.user_locks.hold(user_id):
            yield

    async def process(
        self,
        user_id: str,
        utterance: str,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> ResponseEnvelope:
        """
        Main entry point for a user turn.

        Args:
            user_id: Owner of the session context
            utterance: The user's message
            history: Prior turns of the conversation, oldest first

        Returns:
            ResponseEnvelope with the resolved intent and confidence as metadata
        """
        logger.info(f"🚀 ORCHESTRATOR STARTED | User: {user_id}")
        state = {"user_id": user_id, "utterance": utterance, "history": list(history or []), "response": None}

        async with self._turn_lock(user_id):
            try:
                result = await self.graph.ainvoke(state)
            except Exception as e:
                logger.error(f"❌ ORCHESTRATOR ERROR: {str(e)}", exc_info=True)
                return ResponseEnvelope(
                    message=APOLOGY_MESSAGE,
                    metadata=ResponseMetadata(intent=IntentName.GENERAL_QUESTION.value, confidence=0.0),
                )

        response = result["response"]
        logger.info(f"🏁 ORCHESTRATOR COMPLETED | Intent: {result['route'].intent.value}")
        return ResponseEnvelope(
            message=response.message,
            products=response.products,
            actions=response.actions,
            metadata=ResponseMetadata(
                intent=result["route"].intent.value,
                confidence=result["intent"].confidence,
            ),
        )


def create_orchestrator(
    config: Settings = default_settings,
    cache: Optional[KeyValueCache] = None,
    catalog: Optional[ProductCatalog] = None,
) -> Orchestrator:
    """Wire the production collaborators from settings."""
    cache = cache or create_cache(config)
    catalog = catalog or create_catalog(config, cache=cache)
    client = create_completion_client(config)
    return Orchestrator(
        router=IntentRouter(client),
        handlers=build_handlers(client, catalog),
        session_store=SessionContextStore(cache, ttl_seconds=config.SESSION_CONTEXT_TTL_SECONDS),
        serialize_per_user=config.SERIALIZE_USER_REQUESTS,
    )

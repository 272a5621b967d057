import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from partassist.agents.registry import build_handlers
from partassist.agents.triage.agent import IntentRouter
from partassist.core.models import (
    AgentResponse,
    CompatibilityResult,
    ConversationTurn,
    ExpectingSlot,
    IntentName,
    SessionContext,
)
from partassist.orchestrator.guard import APOLOGY_MESSAGE
from partassist.orchestrator.runner import Orchestrator


def classified(intent, confidence=0.9):
    return json.dumps({"primary": intent, "confidence": confidence, "entities": {}})


@pytest.fixture
def orchestrator(mock_client, mock_catalog, session_store):
    return Orchestrator(
        router=IntentRouter(mock_client),
        handlers=build_handlers(mock_client, mock_catalog),
        session_store=session_store,
    )


class TestOrchestrator:

    @pytest.mark.asyncio
    async def test_routes_to_classified_handler(self, orchestrator, mock_client):
        mock_client.complete = AsyncMock(return_value=classified("order_support", 0.93))

        envelope = await orchestrator.process("u1", "where is my order?")

        assert envelope.metadata.intent == "order_support"
        assert envelope.metadata.confidence == 0.93
        assert envelope.actions[0].type == "input_prompt"

    @pytest.mark.asyncio
    async def test_pending_model_continues_compatibility(
        self, orchestrator, mock_catalog, session_store
    ):
        await session_store.set("u1", SessionContext(
            last_part="PS11752778", expecting=ExpectingSlot.MODEL_NUMBER_FOR_COMPAT,
        ))
        mock_catalog.check_compatibility = AsyncMock(
            return_value=CompatibilityResult(is_compatible=True, details="Rack Track Stop")
        )

        envelope = await orchestrator.process("u1", "WDT780SAEM1")

        mock_catalog.check_compatibility.assert_awaited_once_with("PS11752778", "WDT780SAEM1")
        assert envelope.metadata.intent == "compatibility_check"
        assert envelope.actions[0].type == "add_to_cart"

        context = await session_store.get("u1")
        assert context.expecting is None
        assert context.last_part is None
        assert context.last_intent == "compatibility_check"

    @pytest.mark.asyncio
    async def test_part_only_leaves_pending_model(self, orchestrator, mock_client, session_store):
        mock_client.complete = AsyncMock(return_value=classified("compatibility_check"))

        envelope = await orchestrator.process("u1", "Is PS11752778 compatible?")

        assert envelope.actions[0].field == "model_number"
        context = await session_store.get("u1")
        assert context.last_part == "PS11752778"
        assert context.expecting is ExpectingSlot.MODEL_NUMBER_FOR_COMPAT

    @pytest.mark.asyncio
    async def test_remembers_intent_and_topic(self, orchestrator, session_store):
        history = [
            ConversationTurn(role="user", content="my ice maker stopped"),
            ConversationTurn(role="assistant", content="Step 1: Check the water supply."),
        ]

        envelope = await orchestrator.process("u1", "should I call a technician?", history)

        assert envelope.metadata.intent == "general_question"
        assert envelope.metadata.confidence == 0.85
        context = await session_store.get("u1")
        assert context.last_intent == "general_question"
        assert context.last_topic == "troubleshooting"

    @pytest.mark.asyncio
    async def test_closing_reply_gets_completion_offer(self, orchestrator):
        # Classifier output is unreadable, so the turn defaults to general_question
        envelope = await orchestrator.process("u1", "what is the warranty on that?")

        assert envelope.message == "Happy to help!"
        assert envelope.metadata.intent == "general_question"
        assert envelope.metadata.confidence == 0.5
        assert envelope.actions[-1].type == "conversation_completion"

    @pytest.mark.asyncio
    async def test_pending_question_gets_no_completion_offer(self, orchestrator, mock_client):
        mock_client.complete = AsyncMock(return_value=classified("installation_help"))

        envelope = await orchestrator.process("u1", "how do I install it")

        assert "happy to help" in envelope.message.lower()
        assert [action.type for action in envelope.actions] == ["input_prompt"]

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_apology(self, mock_client, mock_catalog, session_store):
        handlers = build_handlers(mock_client, mock_catalog)
        broken = MagicMock()
        broken.handle = AsyncMock(side_effect=RuntimeError("boom"))
        handlers[IntentName.GENERAL_QUESTION] = broken
        orchestrator = Orchestrator(IntentRouter(mock_client), handlers, session_store)

        envelope = await orchestrator.process("u1", "what is the warranty on that?")

        assert envelope.message == APOLOGY_MESSAGE
        assert envelope.products == []
        assert envelope.metadata.intent == "general_question"
        assert (await session_store.get("u1")).last_intent == "general_question"

    @pytest.mark.asyncio
    async def test_pipeline_failure_becomes_apology_envelope(self, mock_client, mock_catalog, session_store):
        router = MagicMock()
        router.classify = AsyncMock(side_effect=RuntimeError("graph exploded"))
        orchestrator = Orchestrator(router, build_handlers(mock_client, mock_catalog), session_store)

        envelope = await orchestrator.process("u1", "hello there friend")

        assert envelope.message == APOLOGY_MESSAGE
        assert envelope.metadata.intent == "general_question"
        assert envelope.metadata.confidence == 0.0

    @pytest.mark.asyncio
    async def test_turns_for_one_user_do_not_overlap(self, mock_client, mock_catalog, session_store):
        active = {"now": 0, "max": 0}

        async def slow_handle(query, context, history, user_id=None):
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            await asyncio.sleep(0.01)
            active["now"] -= 1
            return AgentResponse(message="done")

        handlers = build_handlers(mock_client, mock_catalog)
        slow = MagicMock()
        slow.handle = slow_handle
        handlers[IntentName.GENERAL_QUESTION] = slow
        orchestrator = Orchestrator(IntentRouter(mock_client), handlers, session_store)

        await asyncio.gather(*(orchestrator.process("u1", f"question {i}") for i in range(3)))

        assert active["max"] == 1
        assert len(orchestrator.user_locks) == 0

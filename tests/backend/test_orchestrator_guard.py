import pytest

from partassist.core.models import AgentResponse
from partassist.orchestrator.guard import APOLOGY_MESSAGE, handler_guard


class TestHandlerGuard:

    @pytest.mark.asyncio
    async def test_passes_through_success(self):
        @handler_guard("general_question")
        async def handle(query):
            return AgentResponse(message=f"echo {query}")

        response = await handle("hi")
        assert response.message == "echo hi"

    @pytest.mark.asyncio
    async def test_exception_becomes_apology(self):
        @handler_guard("troubleshooting")
        async def handle(query):
            raise KeyError("likely_cause")

        response = await handle("broken")

        assert response.message == APOLOGY_MESSAGE
        assert response.products == []
        assert response.actions == []

    def test_keeps_wrapped_name(self):
        @handler_guard("order_support")
        async def handle_order(query):
            return AgentResponse(message="ok")

        assert handle_order.__name__ == "handle_order"

import pytest

from partassist.core.models import AgentResponse, InputPromptAction, ProductCardsAction, ProductRef
from partassist.orchestrator.completion import should_offer_completion, with_completion_offer


class TestCompletionOffer:

    @pytest.mark.parametrize("message", [
        "Hope this helps!",
        "You're welcome, good luck with the repair.",
        "Let me know if you need anything else.",
    ])
    def test_closing_phrases(self, message):
        assert should_offer_completion(AgentResponse(message=message))

    def test_ordinary_reply(self):
        assert not should_offer_completion(AgentResponse(message="The valve costs $54.95."))

    def test_pending_input_suppresses_offer(self):
        response = AgentResponse(
            message="Happy to help! What's your model number?",
            actions=[InputPromptAction(field="model_number", placeholder="Model")],
        )
        assert not should_offer_completion(response)
        assert with_completion_offer(response) is response

    def test_offer_is_appended(self):
        cards = ProductCardsAction(products=[ProductRef(part_number="PS1", name="Valve")])
        response = AgentResponse(message="Hope this helps!", actions=[cards])

        offered = with_completion_offer(response)

        assert [action.type for action in offered.actions] == ["product_cards", "conversation_completion"]
        assert offered.actions[-1].suggestions == ["Find another part", "Ask something else", "Start new chat"]
        assert response.actions == [cards]

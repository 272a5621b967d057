from partassist.core.models import AgentResponse, CompletionOfferAction

COMPLETION_PHRASES = (
    "you're welcome",
    "you're very welcome",
    "glad i could help",
    "happy to help",
    "let me know if you need",
    "any other questions",
    "anything else",
    "feel free to",
    "good luck with the repair",
    "good luck with",
    "hope this helps",
    "if you run into any other issues",
)

COMPLETION_SUGGESTIONS = ("Find another part", "Ask something else", "Start new chat")


def should_offer_completion(response: AgentResponse) -> bool:
    """
    Determines if the reply sounds like the end of the conversation.

    Never true while the reply still waits on the user (input prompt, button
    group or next steps).
    """
    if response.has_pending_input():
        return False
    message = (response.message or "").lower()
    return any(phrase in message for phrase in COMPLETION_PHRASES)


def with_completion_offer(response: AgentResponse) -> AgentResponse:
    if not should_offer_completion(response):
        return response
    return response.model_copy(
        update={"actions": [*response.actions, CompletionOfferAction(suggestions=list(COMPLETION_SUGGESTIONS))]}
    )

from typing import Optional, Sequence

from partassist.agents.base import DomainHandler, format_history
from partassist.agents.triage.agent import is_greeting
from partassist.core.errors import ProviderUnavailable
from partassist.core.models import AgentResponse, CompletionConfig, ConversationTurn, SessionContext
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

FOLLOW_UP_PROMPT = """You are a helpful PartSelect assistant.

IMPORTANT: This is a follow-up question in an ongoing conversation. Use the conversation history to understand context and provide relevant advice.

Rules:
1. If they're asking about hiring a handyman/professional after troubleshooting advice, give honest practical advice
2. If they're asking "what about X" or "should I Y", refer to what was just discussed
3. Keep responses conversational and brief (2-4 sentences)
4. Don't repeat information already given
5. Focus on answering their specific question

Previous conversation:
{conversation}

Current question: "{query}"

Provide a helpful, contextual answer based on the conversation flow."""

WELCOME_MESSAGE = (
    "Hi! I can help you find refrigerator and dishwasher parts, check whether a part fits "
    "your model, troubleshoot a problem, walk you through an installation or sort out an order. "
    "What can I do for you?"
)

UNAVAILABLE_MESSAGE = (
    "I'm having a little trouble answering that right now. Could you rephrase it, or share "
    "your part or model number so I can look it up?"
)

OUT_OF_SCOPE_MESSAGE = (
    "I can only help with refrigerator and dishwasher parts: finding parts, checking "
    "compatibility, troubleshooting, installation and orders. Is there something along "
    "those lines I can help you with?"
)


class GeneralQuestionHandler(DomainHandler):
    """Open-ended answers that lean on the recent conversation."""

    name = "general_question"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        if not history and is_greeting(query):
            return AgentResponse(message=WELCOME_MESSAGE)

        prompt = FOLLOW_UP_PROMPT.format(conversation=format_history(history, 5, "\n\n"), query=query)
        try:
            message = await self.client.complete(
                query, history, CompletionConfig(system_prompt=prompt, temperature=0.7, max_tokens=200)
            )
        except ProviderUnavailable as e:
            logger.error(f"❌ GENERAL: provider unavailable: {e}")
            message = UNAVAILABLE_MESSAGE
        return AgentResponse(message=message)


class OutOfScopeHandler(DomainHandler):

    name = "out_of_scope"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        logger.info("🚫 OUT OF SCOPE: redirecting")
        return AgentResponse(message=OUT_OF_SCOPE_MESSAGE)

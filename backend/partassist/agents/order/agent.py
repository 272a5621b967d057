from typing import Optional, Sequence, Tuple

from partassist.agents.base import DomainHandler
from partassist.agents.prompts import ORDER_SUPPORT_SYSTEM_PROMPT
from partassist.core.errors import ProviderUnavailable
from partassist.core.models import (
    AgentResponse,
    Button,
    ButtonGroupAction,
    CompletionConfig,
    ConversationTurn,
    InputPromptAction,
    SessionContext,
)
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

# Evaluated top to bottom, first keyword hit wins
ORDER_SUB_INTENTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("track_order", ("track", "status", "where is", "shipped")),
    ("return_request", ("return", "refund", "send back")),
    ("shipping_info", ("shipping", "delivery", "how long", "when will")),
)

RETURN_MESSAGE = (
    "I understand you'd like to return an item. PartSelect offers:\n\n"
    "• 365-day return policy\n"
    "• Free return shipping\n"
    "• Full refund for unused parts\n\n"
    "Would you like me to start a return request? I'll need your order number."
)

SHIPPING_MESSAGE = (
    "PartSelect offers:\n\n"
    "📦 **Standard Shipping:** 5-7 business days (FREE over $50)\n"
    "🚚 **Expedited Shipping:** 2-3 business days\n"
    "⚡ **Express Shipping:** 1-2 business days\n\n"
    "Most orders ship within 24 hours!"
)


def classify_order_intent(query: str) -> str:
    lowered = query.lower()
    for name, keywords in ORDER_SUB_INTENTS:
        if any(keyword in lowered for keyword in keywords):
            return name
    return "general"


class OrderSupportHandler(DomainHandler):

    name = "order_support"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        sub_intent = classify_order_intent(query)
        logger.info(f"📦 ORDER: sub-intent={sub_intent}")

        if sub_intent == "track_order":
            return AgentResponse(
                message="I can help you track your order! Please provide your order number (e.g., PS123456).",
                actions=[InputPromptAction(field="order_number", placeholder="Enter order number")],
            )
        if sub_intent == "return_request":
            return AgentResponse(
                message=RETURN_MESSAGE,
                actions=[
                    ButtonGroupAction(
                        buttons=[
                            Button(label="Start Return", action="initiate_return"),
                            Button(label="Return Policy Details", action="show_policy"),
                        ]
                    )
                ],
            )
        if sub_intent == "shipping_info":
            return AgentResponse(message=SHIPPING_MESSAGE)

        try:
            message = await self.client.complete(
                query, history, CompletionConfig(system_prompt=ORDER_SUPPORT_SYSTEM_PROMPT, temperature=0.7)
            )
        except ProviderUnavailable as e:
            logger.error(f"❌ ORDER: provider unavailable: {e}")
            message = (
                "I can help with order tracking, shipping and returns. "
                "Could you share your order number and what you need help with?"
            )
        return AgentResponse(message=message)

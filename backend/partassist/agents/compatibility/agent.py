"""
Compatibility check between a part number and an appliance model number.

Collects the two identifiers over as many turns as needed:

    have neither     -> ask for both
    have part only   -> remember part, expect the model
    have model only  -> remember model, expect the part
    have both        -> resolve, then forget both
"""
from typing import Optional, Sequence

from partassist.agents.base import DOWNSTREAM_ERRORS, DomainHandler
from partassist.agents.entities import extract_entities, extract_from_history
from partassist.core.models import (
    AddToCartAction,
    AgentResponse,
    CompatibilityResult,
    ConversationTurn,
    ExpectingSlot,
    InputPromptAction,
    SessionContext,
)
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

UNVERIFIED_RESULT = CompatibilityResult(
    is_compatible=False,
    details="Unable to verify compatibility at this time.",
    alternative_suggestion="Please try again or contact support.",
)


class CompatibilityHandler(DomainHandler):

    name = "compatibility_check"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        found = extract_entities(query)
        part, model = found.part_number, found.model_number
        logger.info(f"🔍 COMPATIBILITY: from query part={part} model={model}")

        if not part or not model:
            earlier = extract_from_history(history)
            part = part or earlier.part_number
            model = model or earlier.model_number

        if not part and context.last_part:
            part = context.last_part
            logger.info(f"💾 Retrieved part from context: {part}")
        if not model and context.last_model:
            model = context.last_model
            logger.info(f"💾 Retrieved model from context: {model}")

        if part and not model:
            context.last_part = part
            context.expecting = ExpectingSlot.MODEL_NUMBER_FOR_COMPAT
            return AgentResponse(
                message=f"Great! I have part number **{part}**. What's your appliance model number?\n\n(e.g., WDT780SAEM1)",
                actions=[InputPromptAction(field="model_number", placeholder="Enter model number (e.g. WDT780SAEM1)")],
            )

        if model and not part:
            context.last_model = model
            context.expecting = ExpectingSlot.PART_NUMBER_FOR_COMPAT
            return AgentResponse(
                message=f"Got your model number **{model}**! Which part number do you want to check?\n\n(e.g., PS11752778)",
                actions=[InputPromptAction(field="part_number", placeholder="Enter part number (e.g. PS11752778)")],
            )

        if not part and not model:
            return AgentResponse(
                message=(
                    "To check compatibility, I need:\n"
                    "• Part number (e.g., PS11752778)\n"
                    "• Appliance model number (e.g., WDT780SAEM1)\n\n"
                    "Please provide one or both:"
                ),
                actions=[InputPromptAction(field="part_and_model", placeholder="Enter part number and model")],
            )

        logger.info(f"✅ COMPATIBILITY: checking {part} with {model}")
        context.clear_flow()

        try:
            result = await self.catalog.check_compatibility(part, model)
        except DOWNSTREAM_ERRORS as e:
            logger.error(f"Compatibility check error: {e}")
            result = UNVERIFIED_RESULT

        if result.is_compatible:
            return AgentResponse(
                message=f"✓ **Yes!** Part **{part}** is compatible with **{model}**.\n\n{result.details}",
                products=result.alternative_parts,
                actions=[AddToCartAction(part_number=part)],
            )
        return AgentResponse(
            message=(
                f"✗ Unfortunately, part **{part}** is not compatible with **{model}**.\n\n"
                f"{result.alternative_suggestion or 'Try searching for parts specifically for your model.'}"
            ),
            products=result.alternative_parts,
        )

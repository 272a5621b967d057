from typing import Optional, Sequence

from partassist.agents.base import DomainHandler
from partassist.agents.entities import extract_part_number
from partassist.agents.prompts import INSTALLATION_SYSTEM_PROMPT
from partassist.core.errors import ProviderUnavailable
from partassist.core.models import (
    AgentResponse,
    CompletionConfig,
    ConversationTurn,
    InputPromptAction,
    InstallationGuideAction,
    SessionContext,
)
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

VIDEO_URL_TEMPLATE = "https://partselect.com/videos/{part_number}"
PDF_URL_TEMPLATE = "https://partselect.com/guides/{part_number}.pdf"
ESTIMATED_TIME = "30-45 minutes"
DIFFICULTY = "Medium"
TOOLS = ["Phillips screwdriver", "Flathead screwdriver", "Pliers"]

GUIDE_PROMPT = """Create installation instructions for refrigerator/dishwasher part {part_number}.

Provide:
1. Brief overview (2-3 sentences)
2. Tools needed
3. Step-by-step instructions (5-7 steps)
4. Safety warnings
5. Estimated time
6. Difficulty level

Keep it clear and concise."""


def guide_action(part_number: str) -> InstallationGuideAction:
    return InstallationGuideAction(
        video_url=VIDEO_URL_TEMPLATE.format(part_number=part_number),
        pdf_url=PDF_URL_TEMPLATE.format(part_number=part_number),
        estimated_time=ESTIMATED_TIME,
        difficulty=DIFFICULTY,
        tools=list(TOOLS),
    )


class InstallationHandler(DomainHandler):

    name = "installation_help"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        part_number = extract_part_number(query)
        if not part_number:
            return AgentResponse(
                message=(
                    "I'd be happy to help with installation! Which part are you installing? "
                    "Please provide the part number (e.g., PS11752778)."
                ),
                actions=[InputPromptAction(field="part_number", placeholder="Enter part number (e.g. PS11752778)")],
            )

        logger.info(f"🔧 INSTALLATION: building guide for {part_number}")
        try:
            instructions = await self.client.complete(
                GUIDE_PROMPT.format(part_number=part_number),
                [],
                CompletionConfig(system_prompt=INSTALLATION_SYSTEM_PROMPT, temperature=0.5),
            )
        except ProviderUnavailable as e:
            logger.error(f"❌ INSTALLATION: guide unavailable: {e}")
            instructions = (
                f"I can't generate written steps for **{part_number}** right now, but the "
                "installation video and PDF guide below walk through the whole job. "
                "Remember to unplug the appliance and shut off the water supply before you start."
            )

        return AgentResponse(message=instructions, actions=[guide_action(part_number)])

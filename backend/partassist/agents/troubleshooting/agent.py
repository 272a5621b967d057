import re
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from partassist.agents.base import DOWNSTREAM_ERRORS, DomainHandler, format_history
from partassist.agents.prompts import TROUBLESHOOTING_SYSTEM_PROMPT
from partassist.core.errors import ProviderUnavailable
from partassist.core.models import (
    AgentResponse,
    Button,
    ButtonGroupAction,
    CompletionConfig,
    ConversationTurn,
    OutputFormat,
    ProductCardsAction,
    ProductRef,
    SessionContext,
    TroubleshootingWizardAction,
)
from partassist.orchestrator.flow import last_assistant_turn
from partassist.utils.logger import get_logger
from partassist.utils.parsing import loads_object

logger = get_logger(__name__)

COMPLETED_CHECK = re.compile(r"checked|tested|tried|looked at|inspected|verified|found|discovered", re.IGNORECASE)
FOUND_ISSUE = re.compile(r"broke|broken|damaged|cracked|leaking|not working|failed|bad|worn", re.IGNORECASE)
STEP_LIST = re.compile(r"Step \d:|Troubleshooting Steps:", re.IGNORECASE)

RELEVANT_PARTS_LIMIT = 3

ANALYSIS_PROMPT = """You are an appliance repair expert. Analyze this problem:

"{query}"{conversation}

Provide a diagnosis in the following JSON format:
{{
  "likely_cause": "Most likely cause of the issue",
  "steps": ["Step 1: Check...", "Step 2: Test...", "Step 3: Inspect..."],
  "parts": ["part_name1", "part_name2"],
  "difficulty": "easy|medium|hard"
}}

Provide 3-5 troubleshooting steps.

IMPORTANT: Only include parts in the "parts" array if the troubleshooting steps are likely to reveal that a part needs replacement. If the issue can be resolved by checking settings, cleaning, or adjusting things, leave "parts" as an empty array.

Examples:
- "Ice maker not working" -> parts: ["ice maker assembly", "water inlet valve"] (likely needs replacement)
- "Refrigerator not cooling" -> parts: ["compressor", "thermostat"] (likely needs parts)
- "Ice maker making noise" -> parts: [] (might just need cleaning or adjustment)
- "Water dispenser slow" -> parts: [] (likely just a clogged filter or setting)"""

SOLUTION_PROMPT = """User found the issue. Provide direct solution (under 100 words).

User: "{query}"
Recent conversation: {conversation}

Response format:
1. Acknowledge their finding (1 sentence)
2. Recommend the part needed (1-2 sentences)
3. Next steps (1 sentence)

DO NOT repeat troubleshooting steps they completed."""

GUIDE_TEMPLATE = """Based on the symptoms, this sounds like {cause}.

Here's what I recommend checking:

{steps}

Try these steps and let me know what you find! I'm here if you need help with any of them."""

UNAVAILABLE_MESSAGE = (
    "I'm having trouble putting together a diagnosis right now. In the meantime, "
    "check that the appliance has power, the door closes fully and the filters are clean. "
    "Tell me your model number and the exact symptoms and I'll try again."
)

NEXT_STEPS = ButtonGroupAction(
    type="next_steps",
    buttons=[
        Button(label="Find this part", action="search_part"),
        Button(label="Ask another question", action="continue"),
        Button(label="Start fresh chat", action="new_chat"),
    ],
)


class Diagnosis(BaseModel):
    likely_cause: str = "Unknown"
    steps: List[str] = Field(default_factory=list)
    parts: List[str] = Field(default_factory=list)
    difficulty: str = "medium"


def detect_user_progress(query: str, history: Sequence[ConversationTurn]) -> bool:
    """True when the user reports a finding right after being given a step list."""
    if not (COMPLETED_CHECK.search(query) and FOUND_ISSUE.search(query)):
        return False
    last = last_assistant_turn(history)
    return last is not None and bool(STEP_LIST.search(last.content))


def render_guide(diagnosis: Diagnosis) -> str:
    cause = re.split(r"[.?!]", diagnosis.likely_cause or "Unknown")[0].strip() or "unknown"
    steps = "\n".join(f"{i}. {step}" for i, step in enumerate(diagnosis.steps, start=1))
    return GUIDE_TEMPLATE.format(cause=cause.lower(), steps=steps)


class TroubleshootingHandler(DomainHandler):

    name = "troubleshooting"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        if detect_user_progress(query, history):
            logger.info("🎯 TROUBLESHOOTING: user found the issue, jumping to solution")
            return await self.provide_solution(query, history)

        try:
            diagnosis = await self.analyze(query, history)
        except ProviderUnavailable as e:
            logger.error(f"❌ TROUBLESHOOTING: diagnosis unavailable: {e}")
            return AgentResponse(message=UNAVAILABLE_MESSAGE)

        products = await self.find_relevant_parts(diagnosis) if diagnosis.parts else []
        return AgentResponse(
            message=render_guide(diagnosis),
            products=products,
            actions=[TroubleshootingWizardAction(steps=diagnosis.steps)],
        )

    async def analyze(self, query: str, history: Sequence[ConversationTurn]) -> Diagnosis:
        """
        Ask the provider for a structured diagnosis.

        Unreadable output gives an empty diagnosis; ProviderUnavailable propagates.
        """
        conversation = format_history(history, 3)
        prompt = ANALYSIS_PROMPT.format(
            query=query,
            conversation=f"\n\nConversation history:\n{conversation}" if conversation else "",
        )
        raw = await self.client.complete(
            prompt,
            [],
            CompletionConfig(
                system_prompt=TROUBLESHOOTING_SYSTEM_PROMPT,
                temperature=0.5,
                output_format=OutputFormat.STRUCTURED_JSON,
            ),
        )
        try:
            data = loads_object(raw)
            if "likely_cause" not in data and "likelyCause" in data:
                data["likely_cause"] = data.pop("likelyCause")
            return Diagnosis.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unreadable diagnosis, using empty one: {e}")
            return Diagnosis()

    async def find_relevant_parts(self, diagnosis: Diagnosis) -> List[ProductRef]:
        search_text = " ".join([diagnosis.likely_cause, *diagnosis.parts]).strip()
        if not search_text:
            return []
        try:
            return await self.catalog.find_similar(search_text, k=RELEVANT_PARTS_LIMIT)
        except DOWNSTREAM_ERRORS as e:
            logger.error(f"find_relevant_parts error: {e}")
            return []

    async def provide_solution(self, query: str, history: Sequence[ConversationTurn]) -> AgentResponse:
        prompt = SOLUTION_PROMPT.format(query=query, conversation=format_history(history, 3))
        try:
            message = await self.client.complete(
                prompt, [], CompletionConfig(system_prompt=TROUBLESHOOTING_SYSTEM_PROMPT, temperature=0.7)
            )
            diagnosis = await self.analyze(query, history)
        except ProviderUnavailable as e:
            logger.error(f"❌ TROUBLESHOOTING: solution unavailable: {e}")
            return AgentResponse(
                message=(
                    "Sounds like you've found the culprit! Tell me your model number and "
                    "I'll help you find the replacement part."
                ),
                actions=[NEXT_STEPS],
            )

        products = await self.find_relevant_parts(diagnosis) if diagnosis.parts else []
        actions = []
        if products:
            actions.append(ProductCardsAction(products=products[:RELEVANT_PARTS_LIMIT]))
        actions.append(NEXT_STEPS)
        return AgentResponse(message=message, products=products, actions=actions)

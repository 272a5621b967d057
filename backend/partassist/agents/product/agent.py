from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from partassist.agents.base import DOWNSTREAM_ERRORS, DomainHandler, format_history
from partassist.agents.entities import MODEL_PATTERN, SEARCH_MODEL_PATTERN, SEARCH_PART_PATTERN
from partassist.agents.prompts import DEFAULT_SYSTEM_PROMPT
from partassist.core.models import (
    AgentResponse,
    CompletionConfig,
    ConversationTurn,
    InputPromptAction,
    OutputFormat,
    ProductCardsAction,
    ProductRef,
    SessionContext,
)
from partassist.orchestrator.flow import last_assistant_turn
from partassist.utils.logger import get_logger
from partassist.utils.parsing import loads_object

logger = get_logger(__name__)

MAX_PRODUCT_CARDS = 5

SEARCH_PARAMS_SYSTEM_PROMPT = "You are a friendly appliance parts assistant extracting useful search info."

SEARCH_PARAMS_PROMPT = """
Extract appliance search intent from this sentence:

"{query}"

Return JSON with:
{{
  "part_number": "string or null",
  "model_number": "string or null",
  "keywords": ["keywords..."],
  "appliance_type": "refrigerator or dishwasher or null",
  "category": "category name or null"
}}

If the user only says something general like "I need a shelf bin",
guess reasonable keywords but don't fabricate a model number."""

SUGGESTION_PROMPT = """A customer is looking for appliance parts but we don't have specific products available right now.

Customer query: "{query}"
{model_line}{conversation}

Provide a helpful response that:
1. Acknowledges what they're looking for
2. Suggests common parts that typically fit this model/need (use your knowledge)
3. Offers to help them troubleshoot or find the right part

Keep it conversational and helpful (3-4 sentences). DO NOT mention "database" or "our inventory"."""

ASK_MODEL_MESSAGE = (
    "I'd be happy to help you find parts! What's your appliance model number?\n\n"
    "(It's usually on a sticker inside the fridge compartment or on the door frame)"
)


class SearchParams(BaseModel):
    part_number: Optional[str] = None
    model_number: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    appliance_type: Optional[str] = None
    category: Optional[str] = None

    def is_vague(self) -> bool:
        if self.model_number or self.part_number:
            return False
        return not self.keywords or "find parts" in " ".join(self.keywords).lower()


def quick_parse(query: str) -> Optional[SearchParams]:
    """Local parse when the query carries a part or model number."""
    cleaned = query.strip()
    model_match = SEARCH_MODEL_PATTERN.search(cleaned)
    part_match = SEARCH_PART_PATTERN.search(cleaned)
    if not (model_match or part_match):
        return None

    keywords = [
        word for word in cleaned.split()
        if not SEARCH_MODEL_PATTERN.search(word) and not SEARCH_PART_PATTERN.search(word)
    ]
    params = SearchParams(
        part_number=part_match.group(0).upper() if part_match else None,
        model_number=model_match.group(0).upper() if model_match else None,
        keywords=keywords,
    )
    # A bare model number is a search for that model's parts
    if params.model_number and not params.keywords:
        params.keywords.append(params.model_number)
    return params


class ProductSearchHandler(DomainHandler):

    name = "product_search"

    async def handle(
        self,
        query: str,
        context: SessionContext,
        history: Sequence[ConversationTurn],
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        logger.info(f"🔎 PRODUCT: searching for '{query[:80]}'")
        params = self._params_from_offer(history) or await self.extract_search_params(query)

        if params.is_vague():
            return AgentResponse(
                message=ASK_MODEL_MESSAGE,
                actions=[InputPromptAction(field="model_number", placeholder="Enter model number (e.g. WDT780SAEM1)")],
            )

        products = await self.search(params)
        if not products:
            return AgentResponse(message=await self.suggest(query, params, history))

        return AgentResponse(
            message=(
                f"I found {len(products)} compatible parts for your "
                f"{params.model_number or 'appliance'}. Take a look below!"
            ),
            products=products,
            actions=[ProductCardsAction(products=products[:MAX_PRODUCT_CARDS])],
        )

    def _params_from_offer(self, history: Sequence[ConversationTurn]) -> Optional[SearchParams]:
        """The user accepted an earlier "search for parts that fit your <model>" offer."""
        last = last_assistant_turn(history)
        if last is None or "search for parts" not in last.content:
            return None
        match = MODEL_PATTERN.search(last.content)
        if not match:
            return None
        model = match.group(0).upper()
        return SearchParams(model_number=model, keywords=[model, "parts", "compatible"])

    async def extract_search_params(self, query: str) -> SearchParams:
        params = quick_parse(query)
        if params is not None:
            return params

        try:
            raw = await self.client.complete(
                SEARCH_PARAMS_PROMPT.format(query=query),
                [],
                CompletionConfig(
                    system_prompt=SEARCH_PARAMS_SYSTEM_PROMPT,
                    temperature=0.5,
                    max_tokens=150,
                    output_format=OutputFormat.STRUCTURED_JSON,
                ),
            )
            data = loads_object(raw)
            return SearchParams.model_validate({k: v for k, v in data.items() if v is not None})
        except DOWNSTREAM_ERRORS + (ValueError, ValidationError) as e:
            logger.warning(f"extract_search_params fallback used: {e}")
            return SearchParams(keywords=query.split())

    async def search(self, params: SearchParams) -> List[ProductRef]:
        products: List[ProductRef] = []
        try:
            if params.part_number:
                products = await self.catalog.find_part(params.part_number)
            if not products and params.keywords:
                products = await self.catalog.find_similar(" ".join(params.keywords))
        except DOWNSTREAM_ERRORS as e:
            logger.error(f"❌ PRODUCT: search failed: {e}")
            return []
        return products

    async def suggest(self, query: str, params: SearchParams, history: Sequence[ConversationTurn]) -> str:
        conversation = format_history(history, 3)
        prompt = SUGGESTION_PROMPT.format(
            query=query,
            model_line=f"Model number: {params.model_number}" if params.model_number else "",
            conversation=f"\nRecent conversation:\n{conversation}" if conversation else "",
        )
        try:
            return await self.client.complete(
                prompt,
                history,
                CompletionConfig(system_prompt=DEFAULT_SYSTEM_PROMPT, temperature=0.7, max_tokens=200),
            )
        except DOWNSTREAM_ERRORS as e:
            logger.error(f"Suggestion failed: {e}")
            return (
                f"I'd be happy to help you find parts for your {params.model_number or 'appliance'}. "
                "Could you tell me more about what you're looking for? For example, what issue are "
                "you experiencing or what part needs replacement?"
            )

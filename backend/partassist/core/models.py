"""
Shared data models: intents, conversation turns, session context, UI actions
and the response envelope returned to the chat client.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class IntentName(str, Enum):
    PRODUCT_SEARCH = "product_search"
    COMPATIBILITY_CHECK = "compatibility_check"
    TROUBLESHOOTING = "troubleshooting"
    INSTALLATION_HELP = "installation_help"
    ORDER_SUPPORT = "order_support"
    GENERAL_QUESTION = "general_question"
    OUT_OF_SCOPE = "out_of_scope"


class Intent(BaseModel):
    """Classification of the current utterance. Never persisted past the request."""

    primary: IntentName
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    entities: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_follow_up(self) -> bool:
        return bool(self.entities.get("is_follow_up"))


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""
    payload: Optional[Any] = None

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class OutputFormat(str, Enum):
    FREE_TEXT = "free_text"
    STRUCTURED_JSON = "structured_json"


class CompletionConfig(BaseModel):
    """Per-call generation options passed to the completion providers."""

    system_prompt: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    output_format: OutputFormat = OutputFormat.FREE_TEXT


class ExpectingSlot(str, Enum):
    MODEL_NUMBER_FOR_COMPAT = "model_number_for_compat"
    PART_NUMBER_FOR_COMPAT = "part_number_for_compat"


class SessionContext(BaseModel):
    """Short-lived per-user slots carried across turns.

    ``expecting`` is a single field, so setting a new marker always replaces
    the previous one.
    """

    last_part: Optional[str] = None
    last_model: Optional[str] = None
    expecting: Optional[ExpectingSlot] = None
    last_intent: Optional[str] = None
    last_topic: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude_none=True).values())

    def clear_flow(self) -> None:
        """Forget the identifiers collected by a finished compatibility flow."""
        self.last_part = None
        self.last_model = None
        self.expecting = None


class FlowContext(BaseModel):
    stage: Literal["initial", "diagnostic_given", "ongoing"] = "initial"
    topic: Optional[
        Literal["troubleshooting", "compatibility", "installation", "product_recommendation"]
    ] = None


class ProductRef(BaseModel):
    part_number: str
    name: str
    description: Optional[str] = None
    price: float = 0.0
    in_stock: bool = True
    image_url: str = "/placeholder-part.png"
    product_url: Optional[str] = None
    rating: float = 4.3
    reviews: int = 19
    similarity: Optional[float] = None
    compatibility: List[str] = Field(default_factory=list)


class CompatibilityResult(BaseModel):
    is_compatible: bool
    details: str
    alternative_suggestion: Optional[str] = None
    alternative_parts: List[ProductRef] = Field(default_factory=list)


# ─── UI actions ──────────────────────────────────────────────────────────────

class Button(BaseModel):
    label: str
    action: str


class InputPromptAction(BaseModel):
    type: Literal["input_prompt"] = "input_prompt"
    field: str
    placeholder: str


class ButtonGroupAction(BaseModel):
    type: Literal["button_group", "next_steps"] = "button_group"
    buttons: List[Button]


class ProductCardsAction(BaseModel):
    type: Literal["product_cards"] = "product_cards"
    products: List[ProductRef]


class AddToCartAction(BaseModel):
    type: Literal["add_to_cart"] = "add_to_cart"
    part_number: str


class TroubleshootingWizardAction(BaseModel):
    type: Literal["troubleshooting_wizard"] = "troubleshooting_wizard"
    steps: List[str] = Field(default_factory=list)


class InstallationGuideAction(BaseModel):
    type: Literal["installation_guide"] = "installation_guide"
    video_url: str
    pdf_url: str
    estimated_time: str
    difficulty: str
    tools: List[str] = Field(default_factory=list)


class CompletionOfferAction(BaseModel):
    type: Literal["conversation_completion"] = "conversation_completion"
    suggestions: List[str]


Action = Annotated[
    Union[
        InputPromptAction,
        ButtonGroupAction,
        ProductCardsAction,
        AddToCartAction,
        TroubleshootingWizardAction,
        InstallationGuideAction,
        CompletionOfferAction,
    ],
    Field(discriminator="type"),
]

# Actions that leave a question open for the user
PENDING_ACTION_TYPES = frozenset({"input_prompt", "button_group", "next_steps"})


class AgentResponse(BaseModel):
    """Uniform output of every domain handler."""

    message: str
    products: List[ProductRef] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)

    def has_pending_input(self) -> bool:
        return any(action.type in PENDING_ACTION_TYPES for action in self.actions)


class ResponseMetadata(BaseModel):
    intent: str
    confidence: float


class ResponseEnvelope(BaseModel):
    message: str
    products: List[ProductRef] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)
    metadata: ResponseMetadata

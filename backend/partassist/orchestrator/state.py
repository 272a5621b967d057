from typing import List, Optional, TypedDict

from partassist.core.models import AgentResponse, ConversationTurn, FlowContext, Intent, SessionContext
from partassist.orchestrator.continuation import Route


class TurnState(TypedDict, total=False):
    user_id: str
    utterance: str
    history: List[ConversationTurn]

    flow: FlowContext
    intent: Intent
    context: SessionContext
    route: Route

    response: Optional[AgentResponse]

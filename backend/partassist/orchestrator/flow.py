"""
Conversation flow analysis: infer what the conversation was last about from
the most recent assistant turn. Pure and deterministic, no provider calls.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from partassist.core.models import ConversationTurn, FlowContext

FLOW_WINDOW = 5


@dataclass(frozen=True)
class FlowRule:
    """Matches when any ``any_of`` keyword and all ``all_of`` keywords appear."""

    topic: str
    stage: str = "ongoing"
    any_of: Tuple[str, ...] = ()
    all_of: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if self.any_of and not any(word in text for word in self.any_of):
            return False
        return all(word in text for word in self.all_of)


# Evaluated top to bottom, first match wins
FLOW_RULES: Tuple[FlowRule, ...] = (
    FlowRule(topic="troubleshooting", stage="diagnostic_given", any_of=("step", "troubleshoot")),
    FlowRule(topic="compatibility", any_of=("compatible", "model")),
    FlowRule(topic="installation", any_of=("install",)),
    FlowRule(topic="product_recommendation", all_of=("part", "$")),
)


def last_assistant_turn(history: Sequence[ConversationTurn]) -> Optional[ConversationTurn]:
    for turn in reversed(history):
        if turn.role == "assistant":
            return turn
    return None


def analyze_flow(history: Sequence[ConversationTurn]) -> FlowContext:
    """Stage/topic of the conversation from its last few turns."""
    if not history:
        return FlowContext(stage="initial", topic=None)

    last_assistant = last_assistant_turn(list(history)[-FLOW_WINDOW:])
    if last_assistant is None:
        return FlowContext(stage="initial", topic=None)

    content = last_assistant.content.lower()
    for rule in FLOW_RULES:
        if rule.matches(content):
            return FlowContext(stage=rule.stage, topic=rule.topic)
    return FlowContext(stage="ongoing", topic=None)

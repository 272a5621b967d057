"""
Continuation rules: decide whether the current turn continues an earlier
sub-flow instead of following the freshly classified intent.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from partassist.core.models import ExpectingSlot, FlowContext, Intent, IntentName, SessionContext
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Route:
    """Where the turn goes and the query the handler receives."""

    intent: IntentName
    query: str
    rule: Optional[str] = None


@dataclass(frozen=True)
class ContinuationRule:
    name: str
    applies: Callable[[Intent, SessionContext, FlowContext], bool]
    # May clear the consumed ``expecting`` marker on the context
    resolve: Callable[[str, SessionContext], Route]


def _prepend(prefix: Optional[str], query: str) -> str:
    return f"{prefix or ''} {query}".strip()


def _troubleshooting_follow_up(query: str, context: SessionContext) -> Route:
    return Route(IntentName.GENERAL_QUESTION, query, "troubleshooting_follow_up")


def _model_for_compatibility(query: str, context: SessionContext) -> Route:
    context.expecting = None
    return Route(IntentName.COMPATIBILITY_CHECK, _prepend(context.last_part, query), "model_for_compatibility")


def _part_for_compatibility(query: str, context: SessionContext) -> Route:
    context.expecting = None
    return Route(IntentName.COMPATIBILITY_CHECK, _prepend(context.last_model, query), "part_for_compatibility")


# Evaluated top to bottom, first match wins
CONTINUATION_RULES: Tuple[ContinuationRule, ...] = (
    ContinuationRule(
        name="troubleshooting_follow_up",
        applies=lambda intent, context, flow: intent.is_follow_up and flow.topic == "troubleshooting",
        resolve=_troubleshooting_follow_up,
    ),
    ContinuationRule(
        name="model_for_compatibility",
        applies=lambda intent, context, flow: context.expecting == ExpectingSlot.MODEL_NUMBER_FOR_COMPAT,
        resolve=_model_for_compatibility,
    ),
    ContinuationRule(
        name="part_for_compatibility",
        applies=lambda intent, context, flow: context.expecting == ExpectingSlot.PART_NUMBER_FOR_COMPAT,
        resolve=_part_for_compatibility,
    ),
)


def resolve_route(query: str, intent: Intent, context: SessionContext, flow: FlowContext) -> Route:
    for rule in CONTINUATION_RULES:
        if rule.applies(intent, context, flow):
            route = rule.resolve(query, context)
            logger.info(f"↩️ Continuation '{rule.name}': {intent.primary.value} -> {route.intent.value}")
            return route
    return Route(intent.primary, query)

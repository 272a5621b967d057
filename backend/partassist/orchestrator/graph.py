from typing import Mapping

from langgraph.graph import END, StateGraph

from partassist.agents.base import DomainHandler, check_registry
from partassist.agents.triage.agent import IntentRouter
from partassist.core.models import IntentName
from partassist.orchestrator.completion import with_completion_offer
from partassist.orchestrator.continuation import resolve_route
from partassist.orchestrator.flow import analyze_flow
from partassist.orchestrator.guard import handler_guard
from partassist.orchestrator.state import TurnState
from partassist.storage.session_context import SessionContextStore
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


def select_handler(state: TurnState) -> str:
    """Route from resolve_route to the handler node of the resolved intent"""
    intent = state["route"].intent
    logger.info(f"🔀 Routing: resolve_route → {intent.value}")
    return intent.value


def make_handler_node(intent: IntentName, handler: DomainHandler):
    guarded = handler_guard(intent.value)(handler.handle)

    async def run_handler(state: TurnState):
        context = state["context"]
        response = await guarded(state["route"].query, context, state["history"], state["user_id"])
        return {"response": response, "context": context}

    run_handler.__name__ = f"{intent.value}_node"
    return run_handler


def build_graph(
    router: IntentRouter,
    handlers: Mapping[IntentName, DomainHandler],
    session_store: SessionContextStore,
):
    """
    Builds the per-turn workflow.

    Flow:
    analyze_flow -> triage -> load_context -> resolve_route -> <handler> -> remember -> finalize -> end

    resolve_route picks exactly one handler node; every handler node continues
    to remember.
    """
    check_registry(handlers)

    async def analyze_flow_node(state: TurnState):
        return {"flow": analyze_flow(state["history"])}

    async def triage_node(state: TurnState):
        intent = await router.classify(state["utterance"], state["history"], state["flow"])
        logger.info(f"🎯 Intent: {intent.primary.value} ({intent.confidence})")
        return {"intent": intent}

    async def load_context_node(state: TurnState):
        return {"context": await session_store.get(state["user_id"])}

    async def resolve_route_node(state: TurnState):
        context = state["context"]
        route = resolve_route(state["utterance"], state["intent"], context, state["flow"])
        return {"route": route, "context": context}

    async def remember_node(state: TurnState):
        context = state["context"]
        context.last_intent = state["route"].intent.value
        context.last_topic = state["flow"].topic
        await session_store.set(state["user_id"], context)
        return {"context": context}

    async def finalize_node(state: TurnState):
        return {"response": with_completion_offer(state["response"])}

    graph = StateGraph(TurnState)

    graph.add_node("analyze_flow", analyze_flow_node)
    graph.add_node("triage", triage_node)
    graph.add_node("load_context", load_context_node)
    graph.add_node("resolve_route", resolve_route_node)
    graph.add_node("remember", remember_node)
    graph.add_node("finalize", finalize_node)

    for intent, handler in handlers.items():
        graph.add_node(intent.value, make_handler_node(intent, handler))
        graph.add_edge(intent.value, "remember")

    graph.set_entry_point("analyze_flow")
    graph.add_edge("analyze_flow", "triage")
    graph.add_edge("triage", "load_context")
    graph.add_edge("load_context", "resolve_route")
    graph.add_conditional_edges(
        "resolve_route",
        select_handler,
        {intent.value: intent.value for intent in handlers},
    )
    graph.add_edge("remember", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile()

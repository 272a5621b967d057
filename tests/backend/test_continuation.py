from partassist.core.models import ExpectingSlot, FlowContext, Intent, IntentName, SessionContext
from partassist.orchestrator.continuation import resolve_route

GENERAL = Intent(primary=IntentName.GENERAL_QUESTION, confidence=0.5)
TROUBLESHOOTING_FLOW = FlowContext(stage="diagnostic_given", topic="troubleshooting")


class TestResolveRoute:

    def test_no_rule_keeps_classified_intent(self):
        intent = Intent(primary=IntentName.ORDER_SUPPORT, confidence=0.9)
        route = resolve_route("where is my order", intent, SessionContext(), FlowContext())
        assert route.intent is IntentName.ORDER_SUPPORT
        assert route.query == "where is my order"
        assert route.rule is None

    def test_pending_model_continues_compatibility(self):
        context = SessionContext(last_part="PS11752778", expecting=ExpectingSlot.MODEL_NUMBER_FOR_COMPAT)

        route = resolve_route("WDT780SAEM1", GENERAL, context, FlowContext())

        assert route.intent is IntentName.COMPATIBILITY_CHECK
        assert route.query == "PS11752778 WDT780SAEM1"
        assert context.expecting is None
        assert context.last_part == "PS11752778"

    def test_pending_part_continues_compatibility(self):
        context = SessionContext(last_model="WDT780SAEM1", expecting=ExpectingSlot.PART_NUMBER_FOR_COMPAT)
        intent = Intent(primary=IntentName.PRODUCT_SEARCH, confidence=0.8)

        route = resolve_route("PS11752778", intent, context, FlowContext())

        assert route.intent is IntentName.COMPATIBILITY_CHECK
        assert route.query == "WDT780SAEM1 PS11752778"
        assert context.expecting is None

    def test_troubleshooting_follow_up_wins_over_pending_slot(self):
        intent = Intent(primary=IntentName.TROUBLESHOOTING, confidence=0.85, entities={"is_follow_up": True})
        context = SessionContext(last_part="PS11752778", expecting=ExpectingSlot.MODEL_NUMBER_FOR_COMPAT)

        route = resolve_route("should I call someone?", intent, context, TROUBLESHOOTING_FLOW)

        assert route.intent is IntentName.GENERAL_QUESTION
        assert route.rule == "troubleshooting_follow_up"
        assert context.expecting is ExpectingSlot.MODEL_NUMBER_FOR_COMPAT

    def test_follow_up_flag_needs_troubleshooting_topic(self):
        intent = Intent(primary=IntentName.TROUBLESHOOTING, confidence=0.85, entities={"is_follow_up": True})
        route = resolve_route("should I?", intent, SessionContext(), FlowContext(stage="ongoing", topic="installation"))
        assert route.intent is IntentName.TROUBLESHOOTING

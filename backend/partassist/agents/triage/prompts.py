TRIAGE_SYSTEM_PROMPT = (
    "You classify customer messages for an appliance parts store. "
    "Always answer with a single JSON object."
)

TRIAGE_PROMPT = """
Analyze this customer query and classify intent.

Customer Query: "{message}"{history}

CONTEXT AWARENESS RULES:
1. If the query is a follow-up question (starts with "should", "would", "can", "what about"), analyze the conversation to understand what they're asking about
2. If they're asking for advice after receiving troubleshooting steps, classify as general_question (not a new troubleshooting request)
3. Look at the FULL conversation context, not just the current message
4. If unsure, favor the most recent topic rather than assuming a new intent

Possible Intents:
- product_search: Looking for specific parts
- compatibility_check: Checking if a part works
- troubleshooting: Reporting a NEW problem (not follow-up questions)
- installation_help: How to install
- order_support: Orders, shipping, returns
- general_question: Follow-up questions, advice, clarifications about current topic
- out_of_scope: Not related to appliance parts

Respond with valid JSON only:
{{"primary": "intent_name", "confidence": 0.95, "entities": {{}}}}
"""

HISTORY_BLOCK = "\n\nRecent conversation (for context):\n{lines}"

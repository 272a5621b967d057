from functools import wraps

from partassist.core.errors import HandlerFailure
from partassist.core.models import AgentResponse
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

APOLOGY_MESSAGE = (
    "I'm sorry, I ran into a problem while handling that. "
    "Could you try again or rephrase your question?"
)


def apology_response() -> AgentResponse:
    return AgentResponse(message=APOLOGY_MESSAGE, products=[], actions=[])


def handler_guard(handler_name: str):
    """
    Decorator for handler calls: any exception becomes the apology response
    instead of reaching the transport.
    """
    def decorator(fn):
        @wraps(fn)
        async def wrapper(*args, **kwargs) -> AgentResponse:
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                failure = HandlerFailure(handler_name, e)
                logger.error(f"❌ {failure}", exc_info=True)
                return apology_response()
        return wrapper
    return decorator

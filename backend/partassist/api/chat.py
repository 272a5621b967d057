from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from partassist.agents.compatibility.agent import UNVERIFIED_RESULT
from partassist.api.deps import (
    get_catalog,
    get_conversation_log,
    get_orchestrator,
    get_product_store,
    get_rate_limiter,
)
from partassist.api.rate_limit import RateLimiter
from partassist.core.errors import PartAssistError
from partassist.core.models import Action, CompatibilityResult, ProductRef, ResponseMetadata
from partassist.orchestrator.runner import Orchestrator
from partassist.storage.catalog import ProductCatalog
from partassist.storage.conversation_log import ConversationLog
from partassist.storage.product_store import ProductStore
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

SERVER_ERROR_REPLY = "I'm having trouble right now. Please try again shortly."
TOO_MANY_REQUESTS = "Too many requests, please try again later."


async def enforce_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    client_id = request.client.host if request.client else "unknown"
    if not await limiter.allow(client_id):
        logger.warning(f"🚦 Rate limit exceeded for {client_id}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_REQUESTS,
            headers={"Retry-After": str(limiter.window_seconds)},
        )


router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


class ChatRequest(BaseModel):
    message: Union[str, Dict[str, Any], None] = None
    user_id: str = Field(default="default", validation_alias=AliasChoices("user_id", "userId"))


class ChatResponse(BaseModel):
    role: str = "assistant"
    content: str
    products: List[ProductRef] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)
    metadata: ResponseMetadata
    conversation_id: str


class CompatibilityRequest(BaseModel):
    part_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("part_number", "partNumber"))
    model_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("model_number", "modelNumber"))


def normalize_message(message: Union[str, Dict[str, Any], None]) -> str:
    """Accept a plain string or an object carrying ``message``/``content``."""
    if isinstance(message, dict):
        if message.get("message"):
            message = message["message"]
        elif message.get("content"):
            message = message["content"]
        else:
            message = next((v for v in message.values() if isinstance(v, str)), "")
    if not isinstance(message, str):
        message = str(message or "")
    return message.strip()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    conversation_log: ConversationLog = Depends(get_conversation_log),
):
    message = normalize_message(request.message)
    if not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    user_id = request.user_id
    logger.info(f"💬 User {user_id}: {message[:100]}")

    try:
        conversation_id, is_new = await run_in_threadpool(conversation_log.resume_or_start, user_id)
        if is_new:
            await orchestrator.session_store.clear(user_id)
        history = await run_in_threadpool(conversation_log.history, conversation_id)
        await run_in_threadpool(conversation_log.append, conversation_id, "user", message)
        logger.info(f"📜 History: {len(history)} messages")

        envelope = await orchestrator.process(user_id, message, history)

        await run_in_threadpool(
            conversation_log.append,
            conversation_id,
            "assistant",
            envelope.message,
            [product.model_dump(mode="json") for product in envelope.products],
        )
    except SQLAlchemyError as e:
        logger.error(f"❌ Conversation log error: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server error", "role": "assistant", "content": SERVER_ERROR_REPLY},
        )

    logger.info(f"✅ Response: {envelope.message[:100]}")
    return ChatResponse(
        content=envelope.message,
        products=envelope.products,
        actions=envelope.actions,
        metadata=envelope.metadata,
        conversation_id=conversation_id,
    )


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/products/search")
async def search_products(
    q: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    store: ProductStore = Depends(get_product_store),
) -> Dict[str, List[ProductRef]]:
    try:
        products = await run_in_threadpool(store.search_text, q, type)
    except SQLAlchemyError as e:
        logger.error(f"DB search error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database query failed")
    return {"products": products}


@router.post("/compatibility/check", response_model=CompatibilityResult)
async def check_compatibility(
    request: CompatibilityRequest,
    catalog: ProductCatalog = Depends(get_catalog),
) -> CompatibilityResult:
    part_number = (request.part_number or "").strip()
    model_number = (request.model_number or "").strip()
    if not part_number or not model_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="part_number and model_number are required",
        )
    try:
        return await catalog.check_compatibility(part_number, model_number)
    except (PartAssistError, SQLAlchemyError) as e:
        logger.error(f"Compatibility check error: {e}")
        return UNVERIFIED_RESULT

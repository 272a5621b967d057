import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from partassist.api.chat import router as chat_router
from partassist.api.deps import get_conversation_log
from partassist.core.config import settings
from partassist.storage.conversation_log import ConversationLog
from partassist.storage.db import init_db
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


async def sweep_idle_conversations(conversation_log: ConversationLog, interval_seconds: float) -> None:
    """End conversations idle past the turnover window, forever."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_in_threadpool(conversation_log.end_idle_conversations)
        except SQLAlchemyError as e:
            logger.error(f"Cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting parts assistant API...")
    init_db()
    sweeper = asyncio.create_task(
        sweep_idle_conversations(get_conversation_log(), settings.IDLE_SWEEP_INTERVAL_SECONDS)
    )
    logger.info(f"🚀 Parts assistant API running on port {settings.API_PORT}")

    yield

    # Shutdown
    logger.info("Shutting down parts assistant API...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass


app = FastAPI(title="Parts Assistant", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


if __name__ == "__main__":
    uvicorn.run("partassist.main:app", host=settings.API_HOST, port=settings.API_PORT)

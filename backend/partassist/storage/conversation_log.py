"""
Conversation lifecycle and append-only message log.

A user's active conversation is reused until it has been idle longer than the
turnover window (5 minutes by default); then it is ended and a fresh one is
started.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from partassist.core.models import ConversationTurn
from partassist.storage.db import SessionLocal
from partassist.storage.db_models import Conversation, Message, utcnow
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

ROLES = ("user", "assistant", "system")


class ConversationLog:

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        idle_timeout: timedelta = timedelta(minutes=5),
    ):
        self.session_factory = session_factory
        self.idle_timeout = idle_timeout

    def resume_or_start(self, user_id: str, now: Optional[datetime] = None) -> Tuple[str, bool]:
        """
        Return ``(conversation_id, is_new)`` for the user's current conversation.

        When ``is_new`` is true the caller is expected to clear the user's
        session context.
        """
        now = now or utcnow()
        db = self.session_factory()
        try:
            current = (
                db.query(Conversation)
                .filter(Conversation.user_id == user_id)
                .filter(or_(Conversation.status == "active", Conversation.status.is_(None)))
                .order_by(Conversation.last_activity_at.desc())
                .first()
            )

            if current is not None and now - current.last_activity_at <= self.idle_timeout:
                current.last_activity_at = now
                db.commit()
                logger.info(f"♻️ Continue conversation: {current.id}")
                return current.id, False

            if current is not None:
                current.status = "ended"

            conversation = Conversation(
                id=str(uuid.uuid4()),
                user_id=user_id,
                status="active",
                started_at=now,
                last_activity_at=now,
            )
            db.add(conversation)
            db.commit()
            logger.info(f"🆕 New conversation: {conversation.id}")
            return conversation.id, True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def append(self, conversation_id: str, role: str, content: str, payload: Any = None) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}'")
        db = self.session_factory()
        try:
            db.add(Message(conversation_id=conversation_id, sender=role, content=content, payload=payload))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def history(self, conversation_id: str) -> List[ConversationTurn]:
        """All turns of a conversation, oldest first."""
        db = self.session_factory()
        try:
            rows = (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .all()
            )
            return [
                ConversationTurn(role=row.sender, content=row.content or "", payload=row.payload)
                for row in rows
            ]
        finally:
            db.close()

    def end_idle_conversations(self, now: Optional[datetime] = None) -> int:
        """Mark every active conversation idle past the turnover window as ended."""
        cutoff = (now or utcnow()) - self.idle_timeout
        db = self.session_factory()
        try:
            count = (
                db.query(Conversation)
                .filter(Conversation.status == "active")
                .filter(Conversation.last_activity_at < cutoff)
                .update({Conversation.status: "ended"}, synchronize_session=False)
            )
            db.commit()
            if count:
                logger.info(f"🧹 Ended {count} idle conversations")
            return count
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

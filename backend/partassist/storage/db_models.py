from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo anyway)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Part(Base):
    __tablename__ = "parts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    part_number = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    in_stock = Column(Boolean, default=True)
    image_url = Column(Text, nullable=True)
    rating = Column(Numeric(2, 1), nullable=True)
    review_count = Column(Integer, nullable=True)
    category = Column(String(50), nullable=True, index=True)
    appliance_type = Column(String(50), nullable=True, index=True)
    embedding = Column(JSON(none_as_null=True), nullable=True)  # list[float], filled by the offline batch
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    compatible_models = relationship(
        "PartCompatibility", back_populates="part", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Part(part_number={self.part_number}, name={self.name})>"


class PartCompatibility(Base):
    __tablename__ = "part_compatibility"
    __table_args__ = (UniqueConstraint("part_id", "model_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    part_id = Column(Integer, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False)
    model_number = Column(String(100), nullable=False, index=True)

    part = relationship("Part", back_populates="compatible_models")

    def __repr__(self):
        return f"<PartCompatibility(part_id={self.part_id}, model={self.model_number})>"


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True)  # UUID as string
    user_id = Column(String(100), nullable=False, index=True)
    status = Column(String(20), default="active")  # active | ended
    started_at = Column(DateTime, default=utcnow)
    last_activity_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<Conversation(id={self.id}, user={self.user_id}, status={self.status})>"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender = Column(String(20), nullable=False)  # 'user' | 'assistant' | 'system'
    content = Column(Text, nullable=True)
    payload = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Message(id={self.id}, conversation={self.conversation_id}, sender={self.sender})>"

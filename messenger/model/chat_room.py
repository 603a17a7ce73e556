"""
Chat room model. A direct conversation between two users or a named group.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
from messenger.core.database import Base, utcnow


def direct_pair_key(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Order-independent key for the pair; (a, b) and (b, a) give the same value."""
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=True)  # groups only
    is_group = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL for groups; unique so a pair can own at most one direct room
    direct_pair_key = Column(String, nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)  # bumped on every new message

    participants = relationship("ChatParticipant", back_populates="room", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="room", cascade="all, delete-orphan")

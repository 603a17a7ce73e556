"""
Message model. Append-only; ordered by created_at, then id.
"""
from sqlalchemy import BigInteger, Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from messenger.core.database import Base, utcnow


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("chat_room_id", "sender_id", "client_message_id", name="uq_messages_client_message"),
    )

    # Integer id: generation order doubles as the tie-break for equal created_at
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    chat_room_id = Column(Uuid(as_uuid=True), ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    message_type = Column(String, nullable=False, default="text")
    client_message_id = Column(String(100), nullable=True)
    # App-side default, microsecond precision on every backend
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    room = relationship("ChatRoom", back_populates="messages")

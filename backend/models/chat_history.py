# models/chat_history.py

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func

from db.base import Base


class ChatHistory(Base):
    __tablename__ = "chat_history"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(64), nullable=False)  # browser-generated id, no login
    role = Column(String(16), nullable=False)        # user / assistant
    content = Column(Text, nullable=False)
    model = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("chat_history_identifier_created_at_idx", "identifier", "created_at"),
    )

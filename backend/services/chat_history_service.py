from sqlalchemy import select
from sqlalchemy.orm import Session

from models.chat_history import ChatHistory

USER = "user"
ASSISTANT = "assistant"


def get_last_messages(db: Session, identifier: str, limit: int = 10) -> list[ChatHistory]:
    """Last `limit` messages for an identifier, oldest first."""
    latest = list(
        db.scalars(
            select(ChatHistory)
            .where(ChatHistory.identifier == identifier)
            .order_by(ChatHistory.created_at.desc(), ChatHistory.id.desc())
            .limit(limit)
        )
    )
    latest.reverse()
    return latest


def append_exchange(
    db: Session,
    identifier: str,
    question: str,
    answer: str,
    model: str | None = None,
) -> None:
    db.add_all(
        [
            ChatHistory(identifier=identifier, role=USER, content=question, model=model),
            ChatHistory(identifier=identifier, role=ASSISTANT, content=answer, model=model),
        ]
    )
    db.commit()


def serialize_message(message: ChatHistory) -> dict:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "model": message.model,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }

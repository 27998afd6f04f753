import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.base import Base
from models.chat_history import ChatHistory  # noqa: F401
from models.dataset import Dataset  # noqa: F401
from models.table_context import EMBEDDING_DIMENSION, TableContext  # noqa: F401
from services.ai_client import AIClient


class FakeAIClient(AIClient):
    """Records prompts; answers from a canned reply and a deterministic embedding."""

    def __init__(self, reply="A generated description", fail_complete=False, fail_embed=False):
        super().__init__(client=None, embedding_dimension=EMBEDDING_DIMENSION)
        self.reply = reply
        self.fail_complete = fail_complete
        self.fail_embed = fail_embed
        self.prompts = []
        self.models = []
        self.embedded = []

    def complete(self, prompt, model=None):
        self.prompts.append(prompt)
        self.models.append(model)
        if self.fail_complete:
            raise RuntimeError("chat completion unavailable")
        return self.reply

    def embed(self, text):
        self.embedded.append(text)
        if self.fail_embed:
            raise RuntimeError("embedding unavailable")
        return [0.5] * self.embedding_dimension


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def write_csv(tmp_path):
    def _write(name, content):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write

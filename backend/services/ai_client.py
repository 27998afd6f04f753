import logging
import os

from dotenv import load_dotenv
from openai import OpenAI

from models.table_context import EMBEDDING_DIMENSION
from services.errors import AnalysisError

load_dotenv()

logger = logging.getLogger(__name__)

MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY")
MISTRAL_BASE_URL = os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1")
MISTRAL_CHAT_MODEL = os.getenv("MISTRAL_CHAT_MODEL", "mistral-small-latest")
MISTRAL_EMBED_MODEL = os.getenv("MISTRAL_EMBED_MODEL", "mistral-embed")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

DEFAULT_MODEL_SLUG = "langchain:mistral"
# older clients still send this slug for the default model
_DEFAULT_MODEL_ALIASES = {DEFAULT_MODEL_SLUG, "mistralai/mistral-small-24b"}


class AIClient:
    """
    Chat-completion and embedding calls against Mistral's OpenAI-compatible API.
    Built once per process and handed to the services that need it.
    """

    def __init__(
        self,
        client: OpenAI,
        chat_model: str = MISTRAL_CHAT_MODEL,
        embedding_model: str = MISTRAL_EMBED_MODEL,
        embedding_dimension: int = EMBEDDING_DIMENSION,
        openrouter: OpenAI | None = None,
        temperature: float = 0.2,
    ):
        self.client = client
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.embedding_dimension = embedding_dimension
        self.openrouter = openrouter
        self.temperature = temperature

    def _route(self, model: str | None) -> tuple[OpenAI, str]:
        if not model or model in _DEFAULT_MODEL_ALIASES:
            return self.client, self.chat_model
        if self.openrouter is None:
            raise AnalysisError(f"Model '{model}' requires OPENROUTER_API_KEY to be configured")
        return self.openrouter, model

    def complete(self, prompt: str, model: str | None = None) -> str:
        client, model_name = self._route(model)
        response = client.chat.completions.create(
            model=model_name,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()

    def embed(self, text: str) -> list[float]:
        response = self.client.embeddings.create(model=self.embedding_model, input=[text])
        return list(response.data[0].embedding)

    def zero_vector(self) -> list[float]:
        return [0.0] * self.embedding_dimension

    def embed_or_zeros(self, text: str) -> list[float]:
        try:
            return self.embed(text)
        except Exception as exc:
            logger.warning("Embedding failed, using zero vector: %s", exc)
            return self.zero_vector()


def build_ai_client() -> AIClient | None:
    if not MISTRAL_API_KEY:
        logger.warning("MISTRAL_API_KEY not set; AI endpoints are unavailable")
        return None

    openrouter = None
    if OPENROUTER_API_KEY:
        openrouter = OpenAI(api_key=OPENROUTER_API_KEY, base_url=OPENROUTER_BASE_URL)

    return AIClient(
        client=OpenAI(api_key=MISTRAL_API_KEY, base_url=MISTRAL_BASE_URL),
        openrouter=openrouter,
    )

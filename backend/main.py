import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from db.base import Base
from db.session import engine, is_postgres

from models.chat_history import ChatHistory  # noqa: F401  (registers table)
from models.dataset import Dataset  # noqa: F401
from models.table_context import TableContext  # noqa: F401
from services.ai_client import build_ai_client

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="SQL AI Generator API",
    version="1.0.0",
    swagger_ui_parameters={
        "displayRequestDuration": True,
    },
)
app.state.ai_client = None


# --------------------------------------------------
# DB INIT
# --------------------------------------------------
def init_db(bind=engine) -> None:
    if is_postgres(bind):
        with bind.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

    Base.metadata.create_all(bind=bind)

    if is_postgres(bind):
        with bind.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS idx_table_contexts_embedding
                    ON table_contexts USING ivfflat (embedding vector_cosine_ops)
                    WITH (lists = 100)
                    """
                )
            )


@app.on_event("startup")
def _startup():
    try:
        init_db()
    except Exception:
        logger.exception("DB init failed")
    app.state.ai_client = build_ai_client()


# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.datasets import router as datasets_router
from routers.queries import router as queries_router
from routers.schemas import router as schemas_router

# served under /api and at the root for older frontends
for _prefix in ("/api", ""):
    app.include_router(datasets_router, prefix=_prefix)
    app.include_router(schemas_router, prefix=_prefix)
    app.include_router(queries_router, prefix=_prefix)


# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"hello": "SQL AI Generator API", "status": "running"}

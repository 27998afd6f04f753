from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db.deps import get_db
from models.schemas import (
    AskRequest,
    AskResponse,
    ChatHistoryResponse,
    ChatRequest,
    ChatResponse,
    ExecuteRequest,
    ExecuteResponse,
)
from routers.deps import error_response, get_ai_client
from services.ai_client import AIClient
from services.ai_service import analyze_dataset, generate_sql
from services.chat_history_service import get_last_messages, serialize_message
from services.errors import SqlAiError, UnsafeQueryError
from services.schema_service import execute_query

router = APIRouter(tags=["queries"])


@router.post("/queries/ask", response_model=AskResponse)
def ask(
    payload: AskRequest,
    db: Session = Depends(get_db),
    ai_client: AIClient = Depends(get_ai_client),
):
    try:
        sql_query = generate_sql(db, ai_client, payload.question)
    except SqlAiError as exc:
        raise error_response(500, "Failed to generate SQL query", exc)
    return {"question": payload.question, "sqlQuery": sql_query}


@router.post("/queries/execute", response_model=ExecuteResponse)
def execute(payload: ExecuteRequest, db: Session = Depends(get_db)):
    try:
        result = execute_query(db, payload.sqlQuery)
    except UnsafeQueryError as exc:
        raise error_response(400, "Query rejected", exc)
    except SqlAiError as exc:
        raise error_response(500, "Failed to execute query", exc)
    return {"sqlQuery": payload.sqlQuery, **result}


@router.post("/chat/analyze", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    db: Session = Depends(get_db),
    ai_client: AIClient = Depends(get_ai_client),
):
    try:
        analysis = analyze_dataset(
            db,
            ai_client,
            payload.question,
            identifier=payload.identifier,
            model=payload.model,
        )
    except SqlAiError as exc:
        raise error_response(500, "Failed to analyze the dataset", exc)
    return {"question": payload.question, "response": analysis}


@router.get("/chat/history", response_model=ChatHistoryResponse)
def chat_history(
    identifier: str = Query(..., max_length=64),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    messages = get_last_messages(db, identifier, limit)
    return {"messages": [serialize_message(m) for m in messages]}

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    question: str = Field(..., min_length=5, max_length=500)


class AskResponse(BaseModel):
    question: str
    sqlQuery: str


class ExecuteRequest(BaseModel):
    sqlQuery: str = Field(..., min_length=10, max_length=2000)


class ExecuteResponse(BaseModel):
    sqlQuery: str
    rows: list[dict[str, Any]]
    rowCount: int


class ChatRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    question: str = Field(..., min_length=3, max_length=1000)
    identifier: str | None = Field(None, max_length=64)
    model: str | None = Field(None, min_length=3, max_length=100)


class ChatResponse(BaseModel):
    question: str
    response: str


class ChatMessage(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: int
    role: str
    content: str
    model: str | None = None
    createdAt: str | None = None


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessage]


class IngestionResult(BaseModel):
    tableName: str
    columnsProcessed: int
    columns: list[str]
    rowsImported: int


class UploadResponse(BaseModel):
    message: str
    data: IngestionResult

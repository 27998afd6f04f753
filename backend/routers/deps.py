import os

from fastapi import HTTPException, Request, status

from services.ai_client import AIClient

APP_ENV = os.getenv("APP_ENV", "development").strip().lower()


def get_ai_client(request: Request) -> AIClient:
    client = getattr(request.app.state, "ai_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": "AI service is not configured"},
        )
    return client


def error_response(status_code: int, message: str, exc: BaseException | None = None) -> HTTPException:
    detail = {"message": message}
    if exc is not None and APP_ENV != "production":
        detail["error"] = str(exc)
    return HTTPException(status_code=status_code, detail=detail)

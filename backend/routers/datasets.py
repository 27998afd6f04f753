from __future__ import annotations

import logging
import os
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from db.deps import get_db
from models.schemas import UploadResponse
from routers.deps import error_response, get_ai_client
from services.ai_client import AIClient
from services.errors import IngestionError
from services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "tmp/uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
UPLOAD_CHUNK_BYTES = 1024 * 1024

router = APIRouter(prefix="/datasets", tags=["datasets"])


def _store_upload(file: UploadFile) -> str:
    """Stage the upload under UPLOAD_DIR, aborting with 413 before it outgrows MAX_UPLOAD_BYTES."""
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    path = os.path.join(UPLOAD_DIR, f"{uuid.uuid4().hex}.csv")
    written = 0
    with open(path, "wb") as out:
        while chunk := file.file.read(UPLOAD_CHUNK_BYTES):
            written += len(chunk)
            if written > MAX_UPLOAD_BYTES:
                break
            out.write(chunk)

    if written > MAX_UPLOAD_BYTES:
        os.remove(path)
        raise HTTPException(
            status_code=413,
            detail={"message": f"File exceeds the {MAX_UPLOAD_BYTES} byte limit"},
        )
    return path


@router.post("/upload", response_model=UploadResponse)
def upload_csv(
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    ai_client: AIClient = Depends(get_ai_client),
):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail={"message": "No file uploaded"})
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail={"message": "Only .csv files are supported"})

    path = _store_upload(file)
    try:
        size = os.path.getsize(path)
        if size == 0:
            raise HTTPException(status_code=400, detail={"message": "Empty file"})

        result = IngestionService(db, ai_client).process_csv(path, file.filename)
    except IngestionError as exc:
        logger.exception("UPLOAD failed: %s", file.filename)
        raise error_response(500, "Failed to process the uploaded dataset", exc)
    finally:
        if os.path.exists(path):
            os.remove(path)

    logger.info(
        "UPLOAD: file=%s table=%s rows=%s",
        file.filename,
        result["tableName"],
        result["rowsImported"],
    )
    return {"message": "Dataset processed successfully", "data": result}

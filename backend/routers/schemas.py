from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db.deps import get_db
from routers.deps import error_response
from services.errors import DatasetNotFoundError
from services.schema_service import delete_latest_dataset, get_latest_schema

router = APIRouter(prefix="/schemas", tags=["schemas"])


@router.get("/latest")
def show_latest_schema(db: Session = Depends(get_db)):
    try:
        schema = get_latest_schema(db)
    except Exception as exc:
        raise error_response(500, "Failed to load schema", exc)

    if schema is None:
        raise HTTPException(
            status_code=404,
            detail={"message": "No dataset found. Upload a CSV first."},
        )
    return schema


@router.delete("/latest")
def destroy_latest_dataset(db: Session = Depends(get_db)):
    try:
        deleted = delete_latest_dataset(db)
    except DatasetNotFoundError as exc:
        raise error_response(404, "No dataset found to delete", exc)
    except Exception as exc:
        raise error_response(500, "Failed to delete dataset", exc)
    return {"message": "Dataset deleted successfully", **deleted}

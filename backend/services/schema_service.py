import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select, text
from sqlalchemy.orm import Session

from models.dataset import Dataset
from services.errors import DatasetNotFoundError, QueryExecutionError, UnsafeQueryError
from services.table_materializer import drop_table
from services.vector_service import delete_contexts, list_contexts

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = (
    "DROP",
    "DELETE",
    "UPDATE",
    "INSERT",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "EXEC",
    "GRANT",
    "REVOKE",
)
_FORBIDDEN_RE = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)


def _json_safe(value: Any):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _clean_json_row(row) -> dict:
    return {k: _json_safe(v) for k, v in dict(row).items()}


def get_latest_dataset(db: Session) -> Dataset | None:
    return db.scalars(
        select(Dataset).order_by(Dataset.created_at.desc(), Dataset.id.desc()).limit(1)
    ).first()


def _example_value(db: Session, table_name: str, column_name: str):
    try:
        row = db.execute(
            text(
                f"""
                SELECT "{column_name}" AS value
                FROM "{table_name}"
                WHERE "{column_name}" IS NOT NULL
                LIMIT 1
                """
            )
        ).first()
    except Exception as exc:
        logger.warning("Example lookup failed for %s.%s: %s", table_name, column_name, exc)
        db.rollback()
        return None
    return _json_safe(row[0]) if row else None


def get_latest_schema(db: Session) -> dict | None:
    dataset = get_latest_dataset(db)
    if dataset is None:
        return None

    table_name = dataset.internal_table_name
    columns = [
        {
            "name": ctx.column_name,
            "type": ctx.data_type,
            "description": ctx.description,
            "example": _example_value(db, table_name, ctx.column_name),
        }
        for ctx in list_contexts(db, table_name)
    ]
    return {
        "tableName": table_name,
        "originalName": dataset.original_name,
        "rowCount": dataset.row_count,
        "columnStats": dataset.column_stats,
        "columns": columns,
    }


def validate_select_query(sql_query: str) -> str:
    query = sql_query.strip().rstrip(";").strip()
    upper = query.upper()
    if not (upper.startswith("SELECT") or upper.startswith("WITH")):
        raise UnsafeQueryError("Only SELECT queries are allowed")
    if ";" in query:
        raise UnsafeQueryError("Only a single statement is allowed")
    if _FORBIDDEN_RE.search(query):
        raise UnsafeQueryError("Query contains forbidden commands")
    return query


def execute_query(db: Session, sql_query: str) -> dict:
    query = validate_select_query(sql_query)
    try:
        result = db.execute(text(query))
        rows = [_clean_json_row(r) for r in result.mappings().all()]
    except Exception as exc:
        logger.warning("Query failed: %s", exc)
        raise QueryExecutionError(f"Failed to execute query: {exc}") from exc
    finally:
        # read-only endpoint; never keep anything the statement may have touched
        db.rollback()
    return {"rows": rows, "rowCount": len(rows)}


def delete_latest_dataset(db: Session) -> dict:
    dataset = get_latest_dataset(db)
    if dataset is None:
        raise DatasetNotFoundError("No dataset found to delete")

    table_name = dataset.internal_table_name
    original_name = dataset.original_name

    try:
        drop_table(db, table_name)
        db.commit()
        logger.info("Physical table %s dropped", table_name)
    except Exception:
        db.rollback()
        logger.exception("Failed to drop physical table %s", table_name)

    deleted_contexts = delete_contexts(db, table_name)
    db.execute(delete(Dataset).where(Dataset.id == dataset.id))
    db.commit()
    logger.info("Dataset %s deleted (%s column contexts)", original_name, deleted_contexts)

    return {"deletedTable": table_name, "originalName": original_name}

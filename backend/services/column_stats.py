import logging
from contextlib import nullcontext
from typing import Any

from sqlalchemy import text
from sqlalchemy.orm import Session

from db.session import is_postgres
from services.csv_reader import ColumnDescriptor
from services.type_inference import INTEGER, NUMERIC_TYPES, TEXT

logger = logging.getLogger(__name__)

TOP_N = 5

VALUE_PATTERNS = (
    "amount",
    "sales",
    "fare",
    "value",
    "price",
    "total",
    "revenue",
    "valor",
    "venda",
    "preco",
    "tarifa",
    "receita",
    "montante",
    "sum",
)

DIMENSION_PATTERNS = (
    "seller",
    "vendedor",
    "category",
    "categoria",
    "name",
    "nome",
    "product",
    "country",
    "region",
)


def is_value_column(name: str) -> bool:
    lower = name.lower()
    return any(p in lower for p in VALUE_PATTERNS)


def pick_dimension_column(columns: list[ColumnDescriptor]) -> ColumnDescriptor | None:
    text_columns = [c for c in columns if c.type == TEXT]
    by_name = next(
        (c for c in text_columns if any(p in c.name.lower() for p in DIMENSION_PATTERNS)),
        None,
    )
    if by_name is not None:
        return by_name
    return text_columns[0] if text_columns else None


def _savepoint(db: Session):
    # a failed statement poisons the surrounding PostgreSQL transaction
    return db.begin_nested() if is_postgres(db.get_bind()) else nullcontext()


def _label(value: Any) -> str:
    return str(value) if value is not None else "Null"


def top_frequencies(db: Session, table_name: str, col: ColumnDescriptor) -> dict[str, int]:
    where = f'"{col.name}" IS NOT NULL'
    if col.type == TEXT:
        where += f" AND \"{col.name}\" <> ''"

    rows = db.execute(
        text(
            f"""
            SELECT "{col.name}" AS value, COUNT(*) AS cnt
            FROM "{table_name}"
            WHERE {where}
            GROUP BY "{col.name}"
            ORDER BY cnt DESC
            LIMIT :limit
            """
        ),
        {"limit": TOP_N},
    ).mappings().all()
    return {_label(r["value"]): int(r["cnt"]) for r in rows}


def top_sums(
    db: Session,
    table_name: str,
    value_col: ColumnDescriptor,
    dimension_col: ColumnDescriptor,
) -> dict[str, float]:
    dim = f'"{dimension_col.name}"'
    val = f'"{value_col.name}"'
    rows = db.execute(
        text(
            f"""
            SELECT {dim} AS dimension, SUM({val}) AS total
            FROM "{table_name}"
            WHERE {dim} IS NOT NULL AND {val} IS NOT NULL
            GROUP BY {dim}
            ORDER BY total DESC
            LIMIT :limit
            """
        ),
        {"limit": TOP_N},
    ).mappings().all()
    return {_label(r["dimension"]): float(r["total"]) for r in rows}


def calculate_column_stats(
    db: Session,
    table_name: str,
    columns: list[ColumnDescriptor],
) -> dict[str, dict[str, float]] | None:
    """
    Top-5 value counts for every TEXT/INTEGER column, plus top-5 sums of each
    numeric "value" column grouped by the chosen dimension column.
    A column that fails is logged and skipped. None when nothing was computed.
    """
    stats: dict[str, dict[str, float]] = {}

    for col in columns:
        if col.type not in (TEXT, INTEGER):
            continue
        try:
            with _savepoint(db):
                top = top_frequencies(db, table_name, col)
        except Exception as exc:
            logger.warning("Frequency stats failed for %s.%s: %s", table_name, col.name, exc)
            continue
        if top:
            stats[col.name] = top

    dimension_col = pick_dimension_column(columns)
    value_columns = [c for c in columns if c.type in NUMERIC_TYPES and is_value_column(c.name)]

    if dimension_col is not None:
        for value_col in value_columns:
            key = f"{value_col.name}_sum_by_{dimension_col.name}"
            try:
                with _savepoint(db):
                    top = top_sums(db, table_name, value_col, dimension_col)
            except Exception as exc:
                logger.warning("Sum stats failed for %s: %s", key, exc)
                continue
            if top:
                stats[key] = top
                logger.info("Top %s by sum: %s -> %s", TOP_N, key, list(top))

    return stats or None

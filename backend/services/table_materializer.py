import logging
import math
from dataclasses import dataclass

from sqlalchemy import column as sql_column, insert, table as sql_table, text
from sqlalchemy.orm import Session

from services.csv_reader import ColumnDescriptor, read_rows
from services.type_inference import TEXT, infer_column_types

logger = logging.getLogger(__name__)

# PostgreSQL caps bind parameters per statement at 65535
MAX_PARAMS_PER_QUERY = 65000
MAX_BATCH_ROWS = 500


@dataclass
class MaterializedTable:
    table_name: str
    row_count: int
    columns: list[ColumnDescriptor]


def compute_batch_size(column_count: int, max_params: int = MAX_PARAMS_PER_QUERY) -> int:
    if column_count <= 0:
        return MAX_BATCH_ROWS
    return max(1, min(MAX_BATCH_ROWS, max_params // column_count))


def _to_db_value(value):
    if value is None or value == "":
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def drop_table(db: Session, table_name: str) -> None:
    db.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))


def create_table(db: Session, table_name: str, columns: list[ColumnDescriptor]) -> None:
    definitions = ", ".join(f'"{col.name}" {col.type or TEXT}' for col in columns)
    drop_table(db, table_name)
    db.execute(text(f'CREATE TABLE "{table_name}" ({definitions})'))


def insert_rows(
    db: Session,
    table_name: str,
    columns: list[ColumnDescriptor],
    rows: list[dict],
    batch_size: int | None = None,
) -> int:
    """Multi-row INSERTs of at most compute_batch_size(len(columns)) rows each."""
    target = sql_table(table_name, *[sql_column(col.name) for col in columns])
    batch_size = batch_size or compute_batch_size(len(columns))
    total_batches = math.ceil(len(rows) / batch_size)
    logger.info("Inserting %s rows in %s batches of up to %s", len(rows), total_batches, batch_size)

    inserted = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start : start + batch_size]
        values = [
            {col.name: _to_db_value(row.get(col.original_header)) for col in columns}
            for row in batch
        ]
        db.execute(insert(target).values(values))
        inserted += len(batch)
        logger.info(
            "Batch %s/%s inserted (%s/%s rows)",
            start // batch_size + 1,
            total_batches,
            inserted,
            len(rows),
        )
    return inserted


def create_physical_table(
    db: Session,
    file_path: str,
    table_name: str,
    columns: list[ColumnDescriptor],
    separator: str = ",",
) -> MaterializedTable:
    """
    Drop-and-recreate `table_name` with one typed column per descriptor and load
    every data row of the CSV into it. The whole file is held in memory.
    """
    typed = infer_column_types(file_path, columns, separator)
    create_table(db, table_name, typed)

    rows = read_rows(file_path, separator)
    logger.info("%s rows read from CSV", len(rows))
    row_count = insert_rows(db, table_name, typed, rows) if rows else 0
    return MaterializedTable(table_name=table_name, row_count=row_count, columns=typed)

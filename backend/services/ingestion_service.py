import logging
import os

from sqlalchemy.orm import Session

from models.dataset import Dataset
from services.ai_client import AIClient
from services.column_stats import calculate_column_stats
from services.csv_reader import (
    ColumnDescriptor,
    derive_table_name,
    detect_separator_from_path,
    extract_columns,
)
from services.errors import IngestionError
from services.table_materializer import create_physical_table
from services.type_inference import TEXT
from services.vector_service import delete_contexts, save_context

logger = logging.getLogger(__name__)


def _description_prompt(column_name: str, source_name: str) -> str:
    return (
        "You are a data analysis expert. "
        f'Given a column named "{column_name}" in a CSV file called "{source_name}", '
        "write a clear, concise description of what this column represents. "
        "Reply with the description only, without any extra text."
    )


class IngestionService:
    def __init__(self, db: Session, ai_client: AIClient):
        self.db = db
        self.ai_client = ai_client

    def generate_column_description(self, column_name: str, source_name: str) -> str:
        fallback = f"Column {column_name}"
        try:
            description = self.ai_client.complete(_description_prompt(column_name, source_name))
        except Exception as exc:
            logger.warning("Description generation failed for %s: %s", column_name, exc)
            return fallback
        return description or fallback

    def _store_column_context(self, table_name: str, column: ColumnDescriptor, source_name: str) -> None:
        column.description = self.generate_column_description(column.name, source_name)
        embedding = self.ai_client.embed_or_zeros(f"{column.name} {column.description}")
        save_context(
            self.db,
            table_name,
            column.name,
            column.type or TEXT,
            column.description,
            embedding,
        )

    def process_csv(self, file_path: str, file_name: str | None = None) -> dict:
        """
        Load a CSV into its own physical table, store per-column descriptions and
        embeddings, compute column statistics and register the dataset.
        Nothing is committed unless every stage succeeds.
        """
        source_name = file_name or file_path
        logger.info("Processing CSV: %s", source_name)

        try:
            separator = detect_separator_from_path(file_path)
            columns = extract_columns(file_path, separator)
        except Exception as exc:
            raise IngestionError("read CSV header", exc) from exc
        if not columns:
            raise IngestionError("read CSV header", ValueError("header row is empty"))

        table_name = derive_table_name(file_path, file_name)
        logger.info("Target table: %s", table_name)

        try:
            materialized = create_physical_table(self.db, file_path, table_name, columns, separator)
        except Exception as exc:
            self.db.rollback()
            raise IngestionError(f"create table {table_name}", exc) from exc
        logger.info("Table %s created with %s rows", table_name, materialized.row_count)

        try:
            delete_contexts(self.db, table_name)
            total = len(materialized.columns)
            for i, column in enumerate(materialized.columns, start=1):
                logger.info("[%s/%s] Describing column %s", i, total, column.name)
                self._store_column_context(table_name, column, source_name)

            column_stats = calculate_column_stats(self.db, table_name, materialized.columns)

            dataset = Dataset(
                original_name=file_name or os.path.basename(file_path) or "unknown.csv",
                internal_table_name=table_name,
                column_count=len(materialized.columns),
                row_count=materialized.row_count,
                column_stats=column_stats,
            )
            self.db.add(dataset)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            raise IngestionError(f"register dataset {table_name}", exc) from exc

        logger.info("Dataset %s registered", table_name)
        return {
            "tableName": table_name,
            "columnsProcessed": len(materialized.columns),
            "columns": [c.name for c in materialized.columns],
            "rowsImported": materialized.row_count,
        }

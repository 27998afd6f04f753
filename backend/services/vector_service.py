from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from models.table_context import TableContext


def save_context(
    db: Session,
    table_name: str,
    column_name: str,
    data_type: str,
    description: str,
    embedding: list[float],
) -> TableContext:
    record = TableContext(
        table_name=table_name,
        column_name=column_name,
        data_type=data_type,
        description=description,
        embedding=embedding,
    )
    db.add(record)
    db.flush()
    return record


def relevant_columns_query(embedding: list[float], limit: int = 5):
    distance = TableContext.embedding.cosine_distance(embedding).label("distance")
    return select(TableContext, distance).order_by(distance).limit(limit)


def find_relevant_columns(db: Session, embedding: list[float], limit: int = 5) -> list[dict]:
    """Nearest columns by pgvector cosine distance (`<=>`)."""
    rows = db.execute(relevant_columns_query(embedding, limit)).all()
    return [
        {
            "id": ctx.id,
            "tableName": ctx.table_name,
            "columnName": ctx.column_name,
            "dataType": ctx.data_type,
            "description": ctx.description,
            "distance": float(distance) if distance is not None else None,
        }
        for ctx, distance in rows
    ]


def list_contexts(db: Session, table_name: str) -> list[TableContext]:
    return list(
        db.scalars(
            select(TableContext)
            .where(TableContext.table_name == table_name)
            .order_by(TableContext.id.asc())
        )
    )


def delete_contexts(db: Session, table_name: str) -> int:
    result = db.execute(delete(TableContext).where(TableContext.table_name == table_name))
    return int(result.rowcount or 0)

# models/table_context.py

import os

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Integer, String, Text, func

from db.base import Base

EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1024"))


class TableContext(Base):
    __tablename__ = "table_contexts"

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String, nullable=False, index=True)
    column_name = Column(String, nullable=False)
    data_type = Column(String, nullable=False)   # INTEGER / FLOAT / DATE / TEXT
    description = Column(Text, nullable=True)
    embedding = Column(Vector(EMBEDDING_DIMENSION), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

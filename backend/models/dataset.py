# models/dataset.py

from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from db.base import Base


class Dataset(Base):
    __tablename__ = "datasets"

    id = Column(Integer, primary_key=True, index=True)
    original_name = Column(String, nullable=False)        # uploaded file name
    internal_table_name = Column(String, nullable=False)  # physical table holding the rows
    column_count = Column(Integer, nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    # top-5 frequency / sum-by-dimension tables, keyed by column or "<value>_sum_by_<dimension>"
    column_stats = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

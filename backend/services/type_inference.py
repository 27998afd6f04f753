import re
from typing import Iterable

import pandas as pd

from services.csv_reader import ColumnDescriptor, read_sample_rows

INTEGER = "INTEGER"
FLOAT = "FLOAT"
DATE = "DATE"
TEXT = "TEXT"

COLUMN_TYPES = (INTEGER, FLOAT, DATE, TEXT)
NUMERIC_TYPES = (INTEGER, FLOAT)

SAMPLE_SIZE = 100

_INTEGER_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.?\d*$")
# a day-month-year group or a month name; bare times such as "10:30" have neither
_DATE_PART_RE = re.compile(
    r"\d{1,4}[-/.]\d{1,2}|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\b",
    re.IGNORECASE,
)


def _parse_series(series: pd.Series) -> pd.Series:
    try:
        return pd.to_datetime(series, format="mixed", errors="coerce", utc=True)
    except TypeError:
        return pd.to_datetime(series, errors="coerce", utc=True)


def _all_dates(values: list[str]) -> bool:
    if not all(_DATE_PART_RE.search(v) for v in values):
        return False
    parsed = _parse_series(pd.Series(values, dtype="object"))
    return bool(parsed.notna().all())


def infer_column_type(values: Iterable[str | None]) -> str:
    """
    First matching rule wins: INTEGER, then FLOAT, then DATE, else TEXT.
    Only non-empty values count; an empty sample is TEXT.
    """
    observed = [v for v in values if v is not None and v != ""]
    if not observed:
        return TEXT
    if all(_INTEGER_RE.match(v) for v in observed):
        return INTEGER
    if all(_FLOAT_RE.match(v) for v in observed):
        return FLOAT
    if _all_dates(observed):
        return DATE
    return TEXT


def infer_column_types(
    file_path: str,
    columns: list[ColumnDescriptor],
    separator: str = ",",
    sample_size: int = SAMPLE_SIZE,
) -> list[ColumnDescriptor]:
    sample = read_sample_rows(file_path, separator, sample_size)
    for col in columns:
        col.type = infer_column_type(row.get(col.original_header) for row in sample)
    return columns

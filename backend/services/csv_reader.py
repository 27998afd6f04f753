import logging
import os
import re
import unicodedata
from dataclasses import dataclass
from typing import BinaryIO

import pandas as pd

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 4096
_MAX_FIRST_LINE_BYTES = 1024 * 1024
CSV_ENCODING = "utf-8-sig"
# pandas labels blank headers "Unnamed: <n>"
_UNNAMED_HEADER = re.compile(r"^Unnamed: \d+$")


@dataclass
class ColumnDescriptor:
    name: str                  # sanitized, used as the physical column name
    original_header: str       # trimmed header text, used to read parsed rows
    type: str | None = None    # INTEGER / FLOAT / DATE / TEXT once inferred
    description: str | None = None


def detect_separator(stream: BinaryIO) -> str:
    """
    Read up to the first newline and pick ';' when the header line has one,
    ',' otherwise. Never reads more than one line (bounded by _MAX_FIRST_LINE_BYTES).
    """
    buffer = b""
    while len(buffer) < _MAX_FIRST_LINE_BYTES:
        chunk = stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        buffer += chunk
        if b"\n" in chunk:
            break

    first_line = buffer.split(b"\n", 1)[0].decode(CSV_ENCODING, errors="replace")
    separator = ";" if ";" in first_line else ","
    logger.info("CSV separator detected: %r", separator)
    return separator


def detect_separator_from_path(file_path: str) -> str:
    with open(file_path, "rb") as fh:
        return detect_separator(fh)


def sanitize_column_name(raw: str, index: int) -> str:
    """
    Turn a CSV header into a lowercase [a-z0-9_] identifier.
    Falls back to column_<index + 1> when nothing usable is left.
    """
    cleaned = unicodedata.normalize("NFKD", str(raw).strip())
    cleaned = cleaned.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[\"'`]", "", cleaned)
    cleaned = re.sub(r"[\s.]+", "_", cleaned).lower()
    cleaned = re.sub(r"[^a-z0-9_]", "_", cleaned).strip("_")
    if not cleaned:
        return f"column_{index + 1}"
    return cleaned


def derive_table_name(file_path: str, file_name: str | None = None) -> str:
    base = (file_name or os.path.basename(file_path) or "unknown").lower()
    base = re.sub(r"\.csv$", "", base)
    return re.sub(r"[^a-z0-9_]", "_", base) or "unknown"


def _read_frame(file_path: str, separator: str, nrows: int | None = None) -> pd.DataFrame:
    # everything stays a string; empty cells stay "" instead of NaN
    df = pd.read_csv(
        file_path,
        sep=separator,
        dtype=str,
        keep_default_na=False,
        nrows=nrows,
        encoding=CSV_ENCODING,
        index_col=False,
    )
    df.columns = [str(c).strip() for c in df.columns]
    return df


def extract_columns(file_path: str, separator: str = ",") -> list[ColumnDescriptor]:
    """Header row only; at most one data row is parsed."""
    try:
        df = _read_frame(file_path, separator, nrows=1)
    except pd.errors.EmptyDataError:
        return []

    columns = [
        ColumnDescriptor(
            name=sanitize_column_name("" if _UNNAMED_HEADER.match(header) else header, i),
            original_header=header,
        )
        for i, header in enumerate(df.columns)
    ]
    logger.info("Extracted %s columns: %s", len(columns), ", ".join(c.name for c in columns))
    return columns


def read_sample_rows(file_path: str, separator: str, sample_size: int) -> list[dict[str, str]]:
    return _read_frame(file_path, separator, nrows=sample_size).to_dict(orient="records")


def read_rows(file_path: str, separator: str) -> list[dict[str, str]]:
    return _read_frame(file_path, separator).to_dict(orient="records")

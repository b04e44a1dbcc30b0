"""
Table Ingestion — CSV / JSON text → Table
==========================================
Decodes uploaded file contents into the row-mapping Table the analysis
engine consumes. Cells are kept as raw strings; typing happens later in
TypeInference, never here.

Rules carried over from the browser decoder:
  - Blank lines are ignored
  - Rows whose field count differs from the header are dropped
  - Cell values are whitespace-trimmed
  - A file that yields zero rows is a structural error
"""

import io
import json
import logging
from typing import Any, Dict, List

import pandas as pd

from .errors import EmptyTableError, TableFormatError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Table = List[Row]

SUPPORTED_FORMATS = ("csv", "json")


def parse_csv(text: str) -> Table:
    """Decode CSV text with a header line into a Table of string cells."""
    if not text or not text.strip():
        raise EmptyTableError("Empty CSV file")

    # The header is read as an ordinary line so its width fixes the field
    # count: longer lines become bad lines instead of an implicit index.
    try:
        raw = pd.read_csv(
            io.StringIO(text.strip()),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
            on_bad_lines="skip",
        )
    except pd.errors.EmptyDataError:
        raise EmptyTableError("Empty CSV file")
    except pd.errors.ParserError as e:
        raise TableFormatError(f"Could not parse CSV: {e}")

    header = [str(c).strip() for c in raw.iloc[0]]
    df = raw.iloc[1:]

    # Short rows come back padded with NaN; genuine empty cells are "" here.
    before = len(df)
    df = df.dropna(how="any")
    dropped = before - len(df)
    if dropped:
        logger.info(f"Dropped {dropped} CSV row(s) with a mismatched field count")

    df.columns = header
    rows = [
        {k: v.strip() if isinstance(v, str) else v for k, v in record.items()}
        for record in df.to_dict(orient="records")
    ]
    if not rows:
        raise EmptyTableError("No valid data rows found")
    return rows


def parse_json(text: str) -> Table:
    """Decode a JSON array of objects into a Table."""
    if not text or not text.strip():
        raise EmptyTableError("Empty JSON file")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise TableFormatError(f"Could not parse JSON: {e.msg} (line {e.lineno})")

    if not isinstance(payload, list):
        raise TableFormatError("JSON data must be an array of row objects")

    rows = [r for r in payload if isinstance(r, dict)]
    if not rows:
        raise EmptyTableError("No valid data rows found")

    header = list(rows[0].keys())
    kept = [r for r in rows if len(r) == len(header)]
    dropped = len(payload) - len(kept)
    if dropped:
        logger.info(f"Dropped {dropped} JSON row(s) that do not match the first row's fields")
    return kept


def load_table(content: str, fmt: str) -> Table:
    """Dispatch on file format ('csv' or 'json', case-insensitive)."""
    fmt = (fmt or "").lower().lstrip(".")
    if fmt == "csv":
        return parse_csv(content)
    if fmt == "json":
        return parse_json(content)
    raise TableFormatError(
        f"Unsupported file format '{fmt}'. Supported: {', '.join(SUPPORTED_FORMATS)}"
    )


def validate_table(table: Any) -> List[str]:
    """
    Check the structural preconditions of an analysis run and return the
    column list (keys of the first row). Raises before any computation.
    """
    if not isinstance(table, (list, tuple)):
        raise TableFormatError("Table must be a list of row objects")
    if len(table) == 0:
        raise EmptyTableError("No data to analyze: the table has no rows")
    if not all(isinstance(row, dict) for row in table):
        raise TableFormatError("Every row must be an object mapping column names to values")

    columns = list(table[0].keys())
    if not columns:
        raise EmptyTableError("No data to analyze: the table has no columns")
    if not any(isinstance(c, str) for c in columns):
        raise TableFormatError("Column names must be strings")
    return columns

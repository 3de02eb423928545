"""File parser service – reads result spreadsheets into one row table."""

import logging
from io import BytesIO
from pathlib import Path
from typing import Iterable, Tuple

import pandas as pd

from config import (
    ALLOWED_EXTENSIONS, MAX_FILES_PER_BATCH, REQUIRED_COLUMNS, OPTIONAL_COLUMNS,
)

logger = logging.getLogger(__name__)

_OOXML_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# extension → (leading bytes, pandas engine)
_CONTAINERS = {
    ".xlsx": (_OOXML_MAGIC, "openpyxl"),
    ".xls": (_OLE2_MAGIC, "xlrd"),
}


class FileParserError(Exception):
    """Raised when file parsing fails. The whole batch is rejected."""
    pass


class FileFormatError(FileParserError):
    """File extension or content is not a supported spreadsheet."""
    pass


class ColumnMissingError(FileParserError):
    """A required column is absent from a file."""

    def __init__(self, file_name: str, missing: list[str]):
        self.file_name = file_name
        self.missing = missing
        super().__init__(
            f"File {file_name} is missing required column(s): {', '.join(missing)}"
        )


class BatchLimitError(FileParserError):
    pass


def _canonical_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename headers to the column contract, ignoring case and spacing."""
    lookup = {c.upper(): c for c in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
    renamed = {}
    for col in df.columns:
        key = "".join(str(col).split()).upper()
        if key in lookup:
            renamed[col] = lookup[key]
    return df.rename(columns=renamed)


def _engine_for(file_name: str, data: bytes) -> str:
    suffix = Path(file_name).suffix.lower()
    if suffix not in ALLOWED_EXTENSIONS:
        raise FileFormatError(f"Unsupported file format: {suffix or file_name}")
    magic, engine = _CONTAINERS[suffix]
    if not data.startswith(magic):
        raise FileFormatError(f"File {file_name} is not a valid {suffix} workbook.")
    return engine


def parse_workbook(file_name: str, data: bytes) -> pd.DataFrame:
    """
    Parse the first sheet of one workbook.
    Returns a DataFrame with the canonical columns plus
    file_source and source_row (1-based, header is row 1).
    """
    engine = _engine_for(file_name, data)

    try:
        df = pd.read_excel(BytesIO(data), sheet_name=0, engine=engine, dtype=object)
    except Exception as e:
        raise FileFormatError(f"Failed to read file {file_name}: {e}")

    df = _canonical_columns(df)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ColumnMissingError(file_name, missing)

    keep = [c for c in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if c in df.columns]
    df = df[keep].copy()
    df["source_row"] = range(2, len(df) + 2)
    df["file_source"] = file_name
    return df


def parse_files(uploads: Iterable[Tuple[str, bytes]]) -> pd.DataFrame:
    """
    Parse a batch of (file name, bytes) uploads.
    Rows are concatenated in file-then-row order. Any bad file fails the batch.
    """
    uploads = list(uploads)
    if not uploads:
        raise BatchLimitError("Please upload at least one result file.")
    if len(uploads) > MAX_FILES_PER_BATCH:
        raise BatchLimitError(
            f"Too many files: {len(uploads)}. Maximum {MAX_FILES_PER_BATCH} per batch."
        )

    frames = []
    for file_name, data in uploads:
        df = parse_workbook(file_name, data)
        logger.info(f"Parsed {file_name}: {len(df)} rows")
        frames.append(df)

    return pd.concat(frames, ignore_index=True, sort=False)

"""Record normalizer – turns parsed rows into deduplicated StudentRecords."""

from typing import Dict, Iterable

import pandas as pd

from config import (
    COL_SEMESTER, COL_REGNO, COL_SUBJECT, COL_GRADE, COL_DEPARTMENT,
    IMPLICIT_DEPARTMENT_CODE,
)
from models.student import StudentRecord
from services.file_parser import FileFormatError
from utils.helpers import cell_to_str


def _parse_semester(value, where: str) -> int:
    text = cell_to_str(value)
    try:
        semester = int(text)
    except ValueError:
        raise FileFormatError(f"{where}: semester '{text}' is not a whole number.")
    if semester <= 0:
        raise FileFormatError(f"{where}: semester must be positive, got {semester}.")
    return semester


def _row_to_record(row: dict) -> StudentRecord:
    where = f"{row.get('file_source', '?')} row {row.get('source_row', '?')}"

    regno = cell_to_str(row.get(COL_REGNO))
    subject = cell_to_str(row.get(COL_SUBJECT))
    grade = cell_to_str(row.get(COL_GRADE)).upper()
    for label, value in ((COL_REGNO, regno), (COL_SUBJECT, subject), (COL_GRADE, grade)):
        if not value:
            raise FileFormatError(f"{where}: {label} is blank.")

    return StudentRecord(
        registration_number=regno,
        semester=_parse_semester(row.get(COL_SEMESTER), where),
        department_code=cell_to_str(row.get(COL_DEPARTMENT)) or IMPLICIT_DEPARTMENT_CODE,
        subject_code=subject,
        grade=grade,
        file_source=cell_to_str(row.get("file_source")),
    )


def _is_blank(row: dict) -> bool:
    return not any(cell_to_str(row.get(c)) for c in (COL_SEMESTER, COL_REGNO, COL_SUBJECT, COL_GRADE))


def normalize_records(rows: pd.DataFrame) -> list[StudentRecord]:
    """
    Convert parsed rows into StudentRecords.
    Dedup key: (registration number, semester, subject code); the later row wins
    but keeps the position of the first one.
    """
    deduped: Dict[tuple, StudentRecord] = {}
    for row in rows.to_dict(orient="records"):
        if _is_blank(row):
            continue
        record = _row_to_record(row)
        deduped[record.key] = record
    return list(deduped.values())


def merge_records(*record_sets: Iterable[StudentRecord]) -> list[StudentRecord]:
    """Merge record sets uploaded for the same cohort; later sets win."""
    merged: Dict[tuple, StudentRecord] = {}
    for records in record_sets:
        for record in records:
            merged[record.key] = record
    return list(merged.values())


def subject_codes(records: Iterable[StudentRecord]) -> list[str]:
    """Canonical subject-code list (first-seen display value per subject)."""
    seen: Dict[str, str] = {}
    for record in records:
        seen.setdefault(record.subject_key, record.subject_code)
    return list(seen.values())


def semesters(records: Iterable[StudentRecord]) -> list[int]:
    return sorted({r.semester for r in records})

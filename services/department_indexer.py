"""Department indexer – department codes and distinct-student counts."""

from typing import Dict, Iterable, Optional, Set

from models.student import DepartmentStats, StudentRecord
from utils.helpers import normalize_code


def index_departments(records: Iterable[StudentRecord]) -> list[DepartmentStats]:
    """
    Distinct department codes in first-seen order, each with the number of
    distinct registration numbers carrying that code. Recomputed on every call.
    """
    display: Dict[str, str] = {}
    students: Dict[str, Set[str]] = {}
    for record in records:
        key = record.department_key
        if key not in display:
            display[key] = record.department_code
            students[key] = set()
        students[key].add(record.registration_number)

    return [
        DepartmentStats(department_code=display[key], distinct_student_count=len(students[key]))
        for key in display
    ]


def department_codes(records: Iterable[StudentRecord]) -> list[str]:
    return [d.department_code for d in index_departments(records)]


def filter_by_department(
    records: Iterable[StudentRecord],
    department_code: Optional[str] = None,
) -> list[StudentRecord]:
    """Records of one department. No department selected means the full set."""
    records = list(records)
    if not department_code or not department_code.strip():
        return records
    wanted = normalize_code(department_code)
    return [r for r in records if r.department_key == wanted]

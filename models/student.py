"""Data models for the examination result analysis engine."""

from dataclasses import dataclass, field
from typing import Optional

from utils.helpers import normalize_code


@dataclass(frozen=True)
class StudentRecord:
    """One graded subject for one student in one semester."""
    registration_number: str
    semester: int
    department_code: str
    subject_code: str
    grade: str
    file_source: str = ""

    @property
    def subject_key(self) -> str:
        return normalize_code(self.subject_code)

    @property
    def department_key(self) -> str:
        return normalize_code(self.department_code)

    @property
    def key(self) -> tuple[str, int, str]:
        """Uniqueness key: (registration number, semester, subject)."""
        return (self.registration_number, self.semester, self.subject_key)


@dataclass
class SubjectCredit:
    """Credit assignment for a subject, entered by the user."""
    subject_code: str
    credit_value: float
    subject_name: str = ""
    faculty_name: str = ""
    is_current_semester: bool = True

    @property
    def subject_key(self) -> str:
        return normalize_code(self.subject_code)


@dataclass(frozen=True)
class DepartmentStats:
    department_code: str
    distinct_student_count: int


@dataclass(frozen=True)
class SubjectResult:
    """A graded subject with its resolved grade point and credit."""
    subject_code: str
    semester: int
    grade: str
    grade_point: float
    credit_value: float
    is_current_semester: bool
    is_arrear: bool = False


@dataclass(frozen=True)
class StudentPerformance:
    """Computed metrics for one student. Replaced wholesale on recompute."""
    registration_number: str
    department_code: str
    sgpa_by_semester: dict = field(default_factory=dict)
    cgpa: float = 0.0
    subject_results: tuple = ()
    has_arrears: bool = False
    # latest current-semester SGPA; None when no subject of theirs was flagged current
    current_sgpa: Optional[float] = None

    @property
    def arrear_subjects(self) -> list[str]:
        return [r.subject_code for r in self.subject_results if r.is_arrear]

    def to_dict(self) -> dict:
        return {
            "registration_number": self.registration_number,
            "department_code": self.department_code,
            "sgpa_by_semester": {str(k): v for k, v in sorted(self.sgpa_by_semester.items())},
            "cgpa": self.cgpa,
            "current_sgpa": self.current_sgpa,
            "has_arrears": self.has_arrears,
            "subject_results": [
                {
                    "subject_code": r.subject_code,
                    "semester": r.semester,
                    "grade": r.grade,
                    "grade_point": r.grade_point,
                    "credit_value": r.credit_value,
                    "is_current_semester": r.is_current_semester,
                    "is_arrear": r.is_arrear,
                }
                for r in self.subject_results
            ],
        }


@dataclass(frozen=True)
class ValidationIssue:
    """A recoverable credit-assignment problem the caller can display."""
    code: str
    message: str
    subject_code: str = ""

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "subject_code": self.subject_code}

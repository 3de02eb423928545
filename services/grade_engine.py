"""
Grade point engine – SGPA for the current semester, then CGPA across semesters.

The two phases run in order per record set:
  1. run_current_semester  → SGPA from current-semester subjects only
  2. run_cumulative        → per-semester SGPA and CGPA up to the current semester
Running phase 1 again discards the cumulative result.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence

from config import GRADE_POINT_MAP, FAILING_GRADES, COUNT_FAILED_CREDITS
from models.student import StudentPerformance, StudentRecord, SubjectCredit, SubjectResult
from services.credit_validator import CreditCapability, validate_credit_assignment
from services.record_normalizer import subject_codes
from utils.helpers import round_gpa

logger = logging.getLogger(__name__)


class GradeEngineError(Exception):
    pass


class GradeLookupError(GradeEngineError):
    """A grade symbol is missing from the grade-point table."""

    def __init__(self, record: StudentRecord):
        self.record = record
        super().__init__(
            f"Unknown grade '{record.grade}' for {record.registration_number} "
            f"in {record.subject_code} (semester {record.semester})."
        )


class PhaseOrderError(GradeEngineError):
    pass


class Phase(Enum):
    IDLE = "idle"
    CURRENT = "current"
    CUMULATIVE = "cumulative"


class GradePointEngine:

    def __init__(
        self,
        grade_points: Optional[Dict[str, float]] = None,
        failing_grades: Optional[Iterable[str]] = None,
        count_failed_credits: bool = COUNT_FAILED_CREDITS,
    ):
        if grade_points is None:
            grade_points = GRADE_POINT_MAP
        if failing_grades is None:
            failing_grades = FAILING_GRADES
        self.grade_points = {g.upper(): p for g, p in grade_points.items()}
        self.failing_grades = {g.upper() for g in failing_grades}
        self.count_failed_credits = count_failed_credits

        self._phase = Phase.IDLE
        self._records: tuple = ()
        self._current_semesters: tuple = ()
        self._current_credits: list[SubjectCredit] = []
        self._capability = CreditCapability.FULL
        self._current_sgpa: Dict[str, Dict[int, float]] = {}
        self._cumulative_credits: list[SubjectCredit] = []
        self._cumulative: Optional[list[StudentPerformance]] = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def current_semesters(self) -> tuple:
        return self._current_semesters

    @property
    def current_sgpa(self) -> Dict[str, Dict[int, float]]:
        return {k: dict(v) for k, v in self._current_sgpa.items()}

    @property
    def current_credits(self) -> list[SubjectCredit]:
        return list(self._current_credits)

    @property
    def cumulative_credits(self) -> list[SubjectCredit]:
        return list(self._cumulative_credits)

    @property
    def performances(self) -> Optional[list[StudentPerformance]]:
        return self._cumulative

    # ───── Grade points ─────

    def grade_point(self, grade: str) -> float:
        return self.grade_points[grade.strip().upper()]

    def is_failing(self, grade: str) -> bool:
        return grade.strip().upper() in self.failing_grades

    def _check_grades(self, records: Iterable[StudentRecord]) -> None:
        for record in records:
            if record.grade.strip().upper() not in self.grade_points:
                raise GradeLookupError(record)

    def weighted_average(self, results: Iterable[SubjectResult]) -> float:
        """Σ(credit × grade point) / Σ(credit); 0.0 when there are no credits."""
        total_points = 0.0
        total_credits = 0.0
        for r in results:
            if r.is_arrear and not self.count_failed_credits:
                continue
            total_points += r.credit_value * r.grade_point
            total_credits += r.credit_value
        if total_credits <= 0:
            return 0.0
        return round_gpa(total_points / total_credits)

    def _result(self, record: StudentRecord, credit: SubjectCredit, is_current: bool) -> SubjectResult:
        return SubjectResult(
            subject_code=record.subject_code,
            semester=record.semester,
            grade=record.grade,
            grade_point=self.grade_point(record.grade),
            credit_value=float(credit.credit_value),
            is_current_semester=is_current,
            is_arrear=self.is_failing(record.grade),
        )

    # ───── Phase 1 ─────

    def run_current_semester(
        self,
        records: Sequence[StudentRecord],
        credits: Sequence[SubjectCredit],
        current_semesters: Optional[Iterable[int]] = None,
        capability: CreditCapability = CreditCapability.FULL,
    ) -> Dict[str, Dict[int, float]]:
        """
        SGPA per student for the current semester(s), counting only subjects
        whose credit entry is flagged current. Defaults to the highest semester.
        Returns {registration number: {semester: sgpa}}.
        """
        records = tuple(records)
        if current_semesters is None:
            current = (max(r.semester for r in records),) if records else ()
        else:
            current = tuple(sorted({int(s) for s in current_semesters}))
            if not current:
                raise ValueError("At least one current semester is required.")

        in_scope = [r for r in records if r.semester in current]
        lookup = validate_credit_assignment(subject_codes(in_scope), credits, capability)
        self._check_grades(records)

        results: Dict[str, list[SubjectResult]] = {}
        for record in in_scope:
            credit = lookup[record.subject_key]
            if not credit.is_current_semester:
                continue
            results.setdefault(record.registration_number, []).append(
                self._result(record, credit, True)
            )

        sgpa: Dict[str, Dict[int, float]] = {}
        for regno, subject_results in results.items():
            sgpa[regno] = {
                sem: self.weighted_average(r for r in subject_results if r.semester == sem)
                for sem in sorted({r.semester for r in subject_results})
            }

        self._records = records
        self._current_semesters = current
        self._current_credits = list(credits)
        self._capability = capability
        self._current_sgpa = sgpa
        self._cumulative_credits = []
        self._cumulative = None
        self._phase = Phase.CURRENT
        logger.info(f"Current-semester phase: {len(sgpa)} students, semesters {list(current)}")
        return self.current_sgpa

    # ───── Phase 2 ─────

    def run_cumulative(
        self,
        records: Sequence[StudentRecord],
        credits: Optional[Sequence[SubjectCredit]] = None,
        capability: Optional[CreditCapability] = None,
    ) -> list[StudentPerformance]:
        """
        CGPA across every semester up to and including the current one.
        Requires run_current_semester on the same record set first.
        """
        records = tuple(records)
        if self._phase is Phase.IDLE:
            raise PhaseOrderError("Current-semester phase must complete before the cumulative phase.")
        if records != self._records:
            raise PhaseOrderError("Record set changed since the current-semester phase; run it again.")

        if credits is None:
            credits = self._current_credits
        if capability is None:
            capability = self._capability

        last = max(self._current_semesters) if self._current_semesters else 0
        in_scope = [r for r in records if r.semester <= last]
        lookup = validate_credit_assignment(subject_codes(in_scope), credits, capability)
        self._check_grades(records)

        departments: Dict[str, str] = {}
        results: Dict[str, list[SubjectResult]] = {}
        for record in in_scope:
            departments.setdefault(record.registration_number, record.department_code)
            credit = lookup[record.subject_key]
            is_current = record.semester in self._current_semesters and credit.is_current_semester
            results.setdefault(record.registration_number, []).append(
                self._result(record, credit, is_current)
            )

        performances = []
        for regno in sorted(results):
            subject_results = results[regno]
            current = self._current_sgpa.get(regno, {})
            by_semester = {}
            for sem in sorted({r.semester for r in subject_results}):
                if sem in self._current_semesters:
                    # current semesters keep the phase-1 SGPA or have none
                    if sem in current:
                        by_semester[sem] = current[sem]
                else:
                    by_semester[sem] = self.weighted_average(r for r in subject_results if r.semester == sem)
            performances.append(StudentPerformance(
                registration_number=regno,
                department_code=departments[regno],
                sgpa_by_semester=by_semester,
                cgpa=self.weighted_average(subject_results),
                subject_results=tuple(subject_results),
                has_arrears=any(r.is_arrear for r in subject_results),
                current_sgpa=current[max(current)] if current else None,
            ))

        self._cumulative_credits = list(credits)
        self._cumulative = performances
        self._phase = Phase.CUMULATIVE
        logger.info(f"Cumulative phase: {len(performances)} students up to semester {last}")
        return performances

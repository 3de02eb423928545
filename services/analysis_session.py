"""
Analysis session – owns the record set and credit sets for one analysis.

Every user action runs to completion before the next is accepted. Parsing is
the only awaited step; everything after it is synchronous.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Iterable, Optional, Sequence, Tuple

from models.student import DepartmentStats, StudentPerformance, StudentRecord, SubjectCredit, ValidationIssue
from services.credit_validator import CreditCapability, collect_credit_issues
from services.department_indexer import filter_by_department, index_departments
from services.file_parser import parse_files
from services.grade_engine import GradePointEngine, PhaseOrderError
from services.record_normalizer import normalize_records, semesters, subject_codes
from services.report_aggregator import AnalysisReport, build_report

logger = logging.getLogger(__name__)


class SessionBusyError(Exception):
    """Raised when an action arrives while another one is still running."""
    pass


class AnalysisSession:

    def __init__(self, engine: Optional[GradePointEngine] = None):
        self.engine = engine or GradePointEngine()
        self.records: list[StudentRecord] = []
        self.capability = CreditCapability.FULL
        self.current_credits: list[SubjectCredit] = []
        self.cumulative_credits: Optional[list[SubjectCredit]] = None
        self.files: list[str] = []
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    @contextmanager
    def _action(self):
        if self._processing:
            raise SessionBusyError("Another action is still being processed.")
        self._processing = True
        try:
            yield
        finally:
            self._processing = False

    # ───── Ingestion ─────

    async def ingest(self, uploads: Sequence[Tuple[str, bytes]]) -> list[StudentRecord]:
        """Parse and normalize a batch; replaces the record set only on success."""
        with self._action():
            rows = await asyncio.to_thread(parse_files, list(uploads))
            records = normalize_records(rows)

        self.records = records
        self.files = [name for name, _ in uploads]
        # credits were checked against the old subject set
        self.current_credits = []
        self.cumulative_credits = None
        self.engine = GradePointEngine(
            self.engine.grade_points, self.engine.failing_grades, self.engine.count_failed_credits
        )
        logger.info(f"Ingested {len(records)} records from {len(self.files)} file(s)")
        return records

    @property
    def subject_codes(self) -> list[str]:
        return subject_codes(self.records)

    @property
    def semesters(self) -> list[int]:
        return semesters(self.records)

    def departments(self) -> list[DepartmentStats]:
        return index_departments(self.records)

    # ───── Credits ─────

    def assign_credits(
        self,
        credits: Iterable[SubjectCredit],
        capability: CreditCapability = CreditCapability.FULL,
        current_semesters: Optional[Iterable[int]] = None,
    ) -> list[ValidationIssue]:
        """
        Store the current-semester credit set and return every problem with it.
        An empty list opens the gate to computation.
        """
        with self._action():
            credits = list(credits)
            codes = self._current_subject_codes(current_semesters)
            issues = collect_credit_issues(codes, credits, capability)
            self.current_credits = credits
            self.capability = capability
        return issues

    def assign_cumulative_credits(self, credits: Iterable[SubjectCredit]) -> list[ValidationIssue]:
        with self._action():
            credits = list(credits)
            issues = collect_credit_issues(self.subject_codes, credits, self.capability)
            self.cumulative_credits = credits
        return issues

    def _current_subject_codes(self, current_semesters: Optional[Iterable[int]]) -> list[str]:
        if current_semesters is not None:
            wanted = {int(s) for s in current_semesters}
            if not wanted:
                raise ValueError("At least one current semester is required.")
        elif not self.records:
            return []
        else:
            wanted = {max(self.semesters)}
        return subject_codes(r for r in self.records if r.semester in wanted)

    # ───── Computation ─────

    def compute_current(self, current_semesters: Optional[Iterable[int]] = None) -> dict:
        with self._action():
            return self.engine.run_current_semester(
                self.records, self.current_credits, current_semesters, self.capability
            )

    def compute_cumulative(self, credits: Optional[Iterable[SubjectCredit]] = None) -> list[StudentPerformance]:
        with self._action():
            if credits is not None:
                credits = list(credits)
            else:
                credits = self.cumulative_credits
            return self.engine.run_cumulative(self.records, credits)

    def report(self, department: Optional[str] = None) -> AnalysisReport:
        """Final result set, optionally narrowed to one department."""
        performances = self.engine.performances
        if performances is None:
            raise PhaseOrderError("Run the cumulative phase before building a report.")

        records = filter_by_department(self.records, department)
        students = {r.registration_number for r in records}
        return build_report(
            [p for p in performances if p.registration_number in students],
            index_departments(records),
            records,
            self.engine.cumulative_credits + self.engine.current_credits,
        )

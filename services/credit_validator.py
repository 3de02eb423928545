"""Credit assignment validator – checks user-entered credits against observed subjects."""

from enum import Flag
from typing import Iterable, Sequence

from config import CREDIT_MIN, CREDIT_MAX
from models.student import SubjectCredit, ValidationIssue
from utils.helpers import normalize_code


class CreditCapability(Flag):
    """Which fields the credit-entry form collects."""
    BASIC = 0
    WITH_NAMES = 1
    WITH_ARREAR_FLAG = 2
    FULL = 3


class CreditAssignmentError(Exception):
    """Recoverable: the caller corrects the credit set and resubmits."""

    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues = list(issues)
        super().__init__("; ".join(i.message for i in self.issues))


class CreditValidationError(CreditAssignmentError):
    pass


class DuplicateSubjectError(CreditAssignmentError):
    pass


class IncompleteAssignmentError(CreditAssignmentError):

    @property
    def missing_codes(self) -> list[str]:
        return [i.subject_code for i in self.issues if i.code == "missing_credit"]


def _credit_in_range(value) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return CREDIT_MIN <= value <= CREDIT_MAX


def collect_credit_issues(
    subject_codes: Iterable[str],
    credits: Sequence[SubjectCredit],
    capability: CreditCapability = CreditCapability.FULL,
) -> list[ValidationIssue]:
    """Every problem with the credit set, in a stable order."""
    issues: list[ValidationIssue] = []

    for c in credits:
        if not _credit_in_range(c.credit_value):
            issues.append(ValidationIssue(
                "credit_out_of_range",
                f"Credit for {c.subject_code} must be between {CREDIT_MIN} and {CREDIT_MAX}, got {c.credit_value}.",
                c.subject_code,
            ))
        if CreditCapability.WITH_NAMES in capability:
            if not c.subject_name.strip() or not c.faculty_name.strip():
                issues.append(ValidationIssue(
                    "missing_name",
                    f"Subject name and faculty name are required for {c.subject_code}.",
                    c.subject_code,
                ))

    seen: set[str] = set()
    for c in credits:
        key = c.subject_key
        if key in seen:
            issues.append(ValidationIssue(
                "duplicate_subject",
                f"Subject {c.subject_code} has more than one credit entry.",
                c.subject_code,
            ))
        seen.add(key)

    for code in subject_codes:
        if normalize_code(code) not in seen:
            issues.append(ValidationIssue(
                "missing_credit",
                f"No credit assigned for subject {code}.",
                code,
            ))

    return issues


def validate_credit_assignment(
    subject_codes: Iterable[str],
    credits: Sequence[SubjectCredit],
    capability: CreditCapability = CreditCapability.FULL,
) -> dict[str, SubjectCredit]:
    """
    Raise if the credit set is not usable; otherwise return it keyed by subject.
    The raised error carries every issue, not just the first.
    """
    issues = collect_credit_issues(subject_codes, credits, capability)
    codes = {i.code for i in issues}
    if codes & {"credit_out_of_range", "missing_name"}:
        raise CreditValidationError(issues)
    if "duplicate_subject" in codes:
        raise DuplicateSubjectError(issues)
    if "missing_credit" in codes:
        raise IncompleteAssignmentError(issues)
    return credit_lookup(credits, capability)


def credit_lookup(
    credits: Sequence[SubjectCredit],
    capability: CreditCapability = CreditCapability.FULL,
) -> dict[str, SubjectCredit]:
    """Credits keyed by subject; without the arrear flag every subject is current."""
    lookup = {}
    for c in credits:
        if CreditCapability.WITH_ARREAR_FLAG not in capability and not c.is_current_semester:
            c = SubjectCredit(c.subject_code, c.credit_value, c.subject_name, c.faculty_name, True)
        lookup[c.subject_key] = c
    return lookup

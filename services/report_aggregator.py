"""Report aggregator – combines student metrics with department statistics."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import pandas as pd

from config import CLASSIFICATION_THRESHOLDS, NEEDS_IMPROVEMENT_BELOW, TOP_PERFORMERS_LIMIT, GRADE_POINT_MAP
from models.student import DepartmentStats, StudentPerformance, StudentRecord, SubjectCredit
from utils.helpers import normalize_code, round_gpa

CLASS_KEYS = ["distinction", "first_class", "first_class_with_arrears",
              "second_class", "second_class_with_arrears", "fail"]


@dataclass
class AnalysisReport:
    """Final result set handed to report renderers."""
    students: list[StudentPerformance]
    departments: list[DepartmentStats]
    summary: dict
    classification: dict
    current_classification: dict = field(default_factory=dict)
    subject_performance: list[dict] = field(default_factory=list)
    grade_distribution: dict = field(default_factory=dict)
    subject_grade_distribution: dict = field(default_factory=dict)
    top_performers: list[dict] = field(default_factory=list)
    needs_improvement: list[dict] = field(default_factory=list)
    file_summary: list[dict] = field(default_factory=list)
    department_comparison: Optional[list[dict]] = None

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "departments": [
                {"department_code": d.department_code, "distinct_student_count": d.distinct_student_count}
                for d in self.departments
            ],
            "department_comparison": self.department_comparison,
            "classification": self.classification,
            "current_classification": self.current_classification,
            "subject_performance": self.subject_performance,
            "grade_distribution": self.grade_distribution,
            "subject_grade_distribution": self.subject_grade_distribution,
            "top_performers": self.top_performers,
            "needs_improvement": self.needs_improvement,
            "file_summary": self.file_summary,
            "students": [s.to_dict() for s in self.students],
        }


def classify(gpa: float, has_arrears: bool) -> str:
    """Class awarded for a GPA; students with arrears cannot earn distinction."""
    if has_arrears:
        if gpa >= CLASSIFICATION_THRESHOLDS["first_class"]:
            return "first_class_with_arrears"
        if gpa >= CLASSIFICATION_THRESHOLDS["second_class"]:
            return "second_class_with_arrears"
        return "fail"
    if gpa >= CLASSIFICATION_THRESHOLDS["distinction"]:
        return "distinction"
    if gpa >= CLASSIFICATION_THRESHOLDS["first_class"]:
        return "first_class"
    return "second_class"


def _pct(part: int, whole: int) -> float:
    return round_gpa(part / whole * 100) if whole else 0.0


def _gpa(value) -> float:
    """Rounded GPA from a pandas aggregate; NaN (nobody had an SGPA) reads as 0.0."""
    if value is None or pd.isna(value):
        return 0.0
    return round_gpa(value)


def _students_frame(performances: Sequence[StudentPerformance]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "registration_number": p.registration_number,
                "department_code": p.department_code,
                "department_key": normalize_code(p.department_code),
                "cgpa": p.cgpa,
                "sgpa": p.current_sgpa,
                "has_arrears": p.has_arrears,
                "subjects": len(p.subject_results),
                "passed": sum(1 for r in p.subject_results if not r.is_arrear),
            }
            for p in performances
        ],
        columns=["registration_number", "department_code", "department_key", "cgpa", "sgpa", "has_arrears", "subjects", "passed"],
    ).astype({"sgpa": float})


def _summary(df: pd.DataFrame) -> dict:
    if df.empty:
        return {
            "total_students": 0, "average_cgpa": 0.0, "highest_cgpa": 0.0, "lowest_cgpa": 0.0,
            "average_sgpa": 0.0, "highest_sgpa": 0.0, "lowest_sgpa": 0.0,
            "students_with_arrears": 0, "pass_percentage": 0.0, "fail_percentage": 0.0,
        }
    total_subjects = int(df["subjects"].sum())
    passed = int(df["passed"].sum())
    # students without a current SGPA are NaN and left out of the SGPA figures
    return {
        "total_students": int(len(df)),
        "average_cgpa": round_gpa(df["cgpa"].mean()),
        "highest_cgpa": round_gpa(df["cgpa"].max()),
        "lowest_cgpa": round_gpa(df["cgpa"].min()),
        "average_sgpa": _gpa(df["sgpa"].mean()),
        "highest_sgpa": _gpa(df["sgpa"].max()),
        "lowest_sgpa": _gpa(df["sgpa"].min()),
        "students_with_arrears": int(df["has_arrears"].sum()),
        "pass_percentage": _pct(passed, total_subjects),
        "fail_percentage": _pct(total_subjects - passed, total_subjects),
    }


def _department_comparison(df: pd.DataFrame, departments: Sequence[DepartmentStats]) -> list[dict]:
    if df.empty:
        df = df.astype({"cgpa": float, "sgpa": float, "has_arrears": bool, "subjects": int, "passed": int})
    grouped = df.groupby("department_key", sort=False).agg(
        average_cgpa=("cgpa", "mean"),
        highest_cgpa=("cgpa", "max"),
        lowest_cgpa=("cgpa", "min"),
        average_sgpa=("sgpa", "mean"),
        students_with_arrears=("has_arrears", "sum"),
        subjects=("subjects", "sum"),
        passed=("passed", "sum"),
    )

    rows = []
    for dept in departments:
        row = {
            "department_code": dept.department_code,
            "distinct_student_count": dept.distinct_student_count,
            "average_cgpa": 0.0, "highest_cgpa": 0.0, "lowest_cgpa": 0.0,
            "average_sgpa": 0.0, "students_with_arrears": 0, "pass_percentage": 0.0,
        }
        key = normalize_code(dept.department_code)
        if key in grouped.index:
            g = grouped.loc[key]
            row.update({
                "average_cgpa": round_gpa(g["average_cgpa"]),
                "highest_cgpa": round_gpa(g["highest_cgpa"]),
                "lowest_cgpa": round_gpa(g["lowest_cgpa"]),
                "average_sgpa": _gpa(g["average_sgpa"]),
                "students_with_arrears": int(g["students_with_arrears"]),
                "pass_percentage": _pct(int(g["passed"]), int(g["subjects"])),
            })
        rows.append(row)
    return rows


def _class_counts(classes: list[str]) -> dict:
    counts = Counter(classes)
    result = {k: counts.get(k, 0) for k in CLASS_KEYS}
    result["total_students"] = len(classes)
    return result


def _classification(performances: Sequence[StudentPerformance]) -> dict:
    return _class_counts([classify(p.cgpa, p.has_arrears) for p in performances])


def _current_classification(performances: Sequence[StudentPerformance]) -> dict:
    """Classes by current SGPA. Only current-semester arrears count here."""
    return _class_counts([
        classify(p.current_sgpa, any(r.is_arrear for r in p.subject_results if r.is_current_semester))
        for p in performances
        if p.current_sgpa is not None
    ])


def _ordered_grades(counts: Counter) -> dict:
    ordered = sorted(counts, key=lambda g: -GRADE_POINT_MAP.get(g, -1))
    return {g: counts[g] for g in ordered}


def _subject_performance(
    performances: Sequence[StudentPerformance],
    credits: Dict[str, SubjectCredit],
) -> list[dict]:
    """Pass/fail percentages per subject over current-semester results."""
    tally: dict = {}
    for p in performances:
        for r in p.subject_results:
            if not r.is_current_semester:
                continue
            entry = tally.setdefault(r.subject_code, {"pass": 0, "fail": 0})
            entry["fail" if r.is_arrear else "pass"] += 1

    rows = []
    for code, t in tally.items():
        credit = credits.get(normalize_code(code))
        rows.append({
            "subject_code": code,
            "subject_name": credit.subject_name if credit else "",
            "faculty_name": credit.faculty_name if credit else "",
            "appeared": t["pass"] + t["fail"],
            "pass_percentage": _pct(t["pass"], t["pass"] + t["fail"]),
            "fail_percentage": _pct(t["fail"], t["pass"] + t["fail"]),
        })
    return rows


def _grade_distribution(performances: Sequence[StudentPerformance]) -> dict:
    return _ordered_grades(Counter(r.grade for p in performances for r in p.subject_results))


def _subject_grade_distribution(performances: Sequence[StudentPerformance]) -> dict:
    """{subject code: {grade: count}} over current-semester results."""
    per_subject: Dict[str, Counter] = {}
    for p in performances:
        for r in p.subject_results:
            if r.is_current_semester:
                per_subject.setdefault(r.subject_code, Counter())[r.grade] += 1
    return {code: _ordered_grades(counts) for code, counts in per_subject.items()}


def _file_summary(records: Sequence[StudentRecord], performances: Sequence[StudentPerformance]) -> list[dict]:
    if not records:
        return []
    sgpa = {p.registration_number: p.sgpa_by_semester for p in performances}
    df = pd.DataFrame(
        [{"file_source": r.file_source, "semester": r.semester,
          "registration_number": r.registration_number,
          "sgpa": sgpa.get(r.registration_number, {}).get(r.semester)}
         for r in records]
    ).astype({"sgpa": float})
    grouped = df.groupby("file_source", sort=False).agg(
        records=("semester", "size"),
        semester=("semester", "max"),
        students=("registration_number", "nunique"),
    ).reset_index()

    # one SGPA per student and semester, however many subject rows the file holds
    per_student = df.drop_duplicates(["file_source", "registration_number", "semester"])
    average_sgpa = per_student.groupby("file_source", sort=False)["sgpa"].mean()

    return [
        {"file_source": row.file_source, "records": int(row.records),
         "semester": int(row.semester), "students": int(row.students),
         "average_sgpa": _gpa(average_sgpa.get(row.file_source))}
        for row in grouped.itertuples(index=False)
    ]


def build_report(
    performances: Sequence[StudentPerformance],
    department_stats: Sequence[DepartmentStats],
    records: Optional[Sequence[StudentRecord]] = None,
    credits: Optional[Sequence[SubjectCredit]] = None,
) -> AnalysisReport:
    """
    Combine per-student metrics with department statistics.
    A department comparison is added whenever more than one department is present.
    Subject and faculty names come from `credits`; a later entry for the same
    subject wins.
    """
    performances = list(performances)
    departments = list(department_stats)
    df = _students_frame(performances)
    credit_names = {c.subject_key: c for c in credits or []}

    ranked = sorted(performances, key=lambda p: (-p.cgpa, p.registration_number))
    top_performers = [
        {"rank": i + 1, "registration_number": p.registration_number,
         "department_code": p.department_code, "cgpa": p.cgpa}
        for i, p in enumerate(ranked[:TOP_PERFORMERS_LIMIT])
    ]
    needs_improvement = [
        {"registration_number": p.registration_number,
         "sgpa": p.current_sgpa,
         "arrear_subjects": p.arrear_subjects}
        for p in performances
        if p.has_arrears or (p.current_sgpa is not None and p.current_sgpa < NEEDS_IMPROVEMENT_BELOW)
    ]

    return AnalysisReport(
        students=performances,
        departments=departments,
        summary=_summary(df),
        classification=_classification(performances),
        current_classification=_current_classification(performances),
        subject_performance=_subject_performance(performances, credit_names),
        grade_distribution=_grade_distribution(performances),
        subject_grade_distribution=_subject_grade_distribution(performances),
        top_performers=top_performers,
        needs_improvement=needs_improvement,
        file_summary=_file_summary(records or [], performances),
        department_comparison=_department_comparison(df, departments) if len(departments) > 1 else None,
    )

import io

import pandas as pd
import pytest

from models.student import StudentRecord, SubjectCredit

COLUMNS = ["SEM", "REGNO", "SCODE", "GR", "CNo"]


def workbook_bytes(rows, columns=COLUMNS) -> bytes:
    """An in-memory .xlsx export with the given rows."""
    buf = io.BytesIO()
    pd.DataFrame(rows, columns=list(columns)).to_excel(buf, index=False, engine="openpyxl")
    return buf.getvalue()


def record(regno, sem, scode, grade, dept="CS", source="results.xlsx") -> StudentRecord:
    return StudentRecord(
        registration_number=regno, semester=sem, department_code=dept,
        subject_code=scode, grade=grade, file_source=source,
    )


def credit(code, value, current=True) -> SubjectCredit:
    return SubjectCredit(
        subject_code=code, credit_value=value,
        subject_name=f"Subject {code}", faculty_name="Dr. Ramesh Kumar",
        is_current_semester=current,
    )


@pytest.fixture
def make_workbook():
    return workbook_bytes


@pytest.fixture
def scenario_a_records():
    return [
        record("S1", 1, "CS101", "A"),
        record("S1", 1, "CS102", "B"),
    ]


@pytest.fixture
def scenario_a_credits():
    return [credit("CS101", 4), credit("CS102", 3)]


@pytest.fixture
def two_semester_records():
    # S1 re-appears for CS102 in semester 2
    return [
        record("S1", 1, "CS101", "A"),
        record("S1", 1, "CS102", "B"),
        record("S1", 2, "CS201", "O"),
        record("S1", 2, "CS202", "A+"),
        record("S1", 2, "CS102", "C"),
        record("S2", 1, "CS101", "U"),
        record("S2", 1, "CS102", "P"),
        record("S2", 2, "CS201", "B+"),
        record("S2", 2, "CS202", "B"),
    ]


@pytest.fixture
def two_semester_current_credits():
    return [credit("CS201", 4), credit("CS202", 3), credit("CS102", 3, current=False)]


@pytest.fixture
def two_semester_cumulative_credits():
    return [
        credit("CS101", 4, current=False),
        credit("CS102", 3, current=False),
        credit("CS201", 4),
        credit("CS202", 3),
    ]

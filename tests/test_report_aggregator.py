import pytest

from services.department_indexer import index_departments
from services.grade_engine import GradePointEngine
from services.report_aggregator import build_report, classify
from tests.conftest import credit, record

RECORDS = [
    record("S1", 1, "CS101", "A", dept="CS"),
    record("S1", 1, "CS102", "B", dept="CS"),
    record("S2", 1, "CS101", "O", dept="CS"),
    record("S2", 1, "CS102", "A+", dept="CS"),
    record("E1", 1, "EC101", "U", dept="EC"),
    record("E1", 1, "EC102", "A", dept="EC"),
]
CREDITS = [credit("CS101", 4), credit("CS102", 3), credit("EC101", 4), credit("EC102", 3)]


def _performances(records):
    engine = GradePointEngine()
    engine.run_current_semester(records, CREDITS)
    return engine.run_cumulative(records)


def test_two_departments_produce_comparison():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    comparison = {row["department_code"]: row for row in report.department_comparison}
    assert set(comparison) == {"CS", "EC"}
    assert comparison["CS"]["distinct_student_count"] == 2
    assert comparison["CS"]["highest_cgpa"] == 9.57
    assert comparison["CS"]["lowest_cgpa"] == 7.14
    assert comparison["EC"]["distinct_student_count"] == 1
    assert comparison["EC"]["students_with_arrears"] == 1
    assert comparison["EC"]["pass_percentage"] == 50.0


def test_single_department_has_no_comparison():
    cs = [r for r in RECORDS if r.department_code == "CS"]

    report = build_report(_performances(cs), index_departments(cs), cs)

    assert report.department_comparison is None
    assert report.summary["total_students"] == 2


def test_summary_and_rankings():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    assert report.summary["highest_cgpa"] == 9.57
    assert report.summary["lowest_cgpa"] == 3.43
    assert report.summary["students_with_arrears"] == 1
    assert report.summary["pass_percentage"] == 83.33
    assert [t["registration_number"] for t in report.top_performers] == ["S2", "S1", "E1"]
    assert report.needs_improvement == [
        {"registration_number": "E1", "sgpa": 3.43, "arrear_subjects": ["EC101"]}
    ]
    assert list(report.grade_distribution) == ["O", "A+", "A", "B", "U"]
    assert report.grade_distribution["A"] == 2
    assert report.file_summary == [
        {"file_source": "results.xlsx", "records": 6, "semester": 1, "students": 3, "average_sgpa": 6.71}
    ]


def test_classification_counts():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    assert report.classification["distinction"] == 1
    assert report.classification["first_class"] == 1
    assert report.classification["fail"] == 1
    assert report.classification["total_students"] == 3


def test_subject_performance():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS, CREDITS)

    by_subject = {s["subject_code"]: s for s in report.subject_performance}
    assert by_subject["CS101"]["subject_name"] == "Subject CS101"
    assert by_subject["CS101"]["faculty_name"] == "Dr. Ramesh Kumar"
    assert by_subject["EC101"]["fail_percentage"] == 100.0
    assert by_subject["CS101"]["pass_percentage"] == 100.0
    assert by_subject["CS101"]["appeared"] == 2


@pytest.mark.parametrize("gpa, arrears, expected", [
    (9.0, False, "distinction"),
    (8.5, False, "distinction"),
    (7.0, False, "first_class"),
    (5.5, False, "second_class"),
    (9.0, True, "first_class_with_arrears"),
    (5.0, True, "second_class_with_arrears"),
    (4.9, True, "fail"),
])
def test_classify(gpa, arrears, expected):
    assert classify(gpa, arrears) == expected


def test_empty_report():
    report = build_report([], [])

    assert report.summary["total_students"] == 0
    assert report.department_comparison is None
    assert report.to_dict()["students"] == []


def test_subject_names_are_blank_without_credits():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    assert {s["subject_name"] for s in report.subject_performance} == {""}


def test_subject_grade_distribution():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    assert report.subject_grade_distribution == {
        "EC101": {"U": 1},
        "EC102": {"A": 1},
        "CS101": {"O": 1, "A": 1},
        "CS102": {"A+": 1, "B": 1},
    }
    assert list(report.subject_grade_distribution["CS101"]) == ["O", "A"]


def test_current_classification_uses_current_sgpa():
    report = build_report(_performances(RECORDS), index_departments(RECORDS), RECORDS)

    assert report.current_classification["distinction"] == 1
    assert report.current_classification["first_class"] == 1
    assert report.current_classification["fail"] == 1
    assert report.to_dict()["current_classification"]["total_students"] == 3


def test_student_without_current_subjects_is_left_out_of_sgpa_figures():
    records = [
        record("S1", 2, "CS201", "O"),
        record("S2", 1, "CS101", "U"),
        record("S2", 2, "CS101", "P"),
    ]
    engine = GradePointEngine()
    engine.run_current_semester(records, [credit("CS101", 4, current=False), credit("CS201", 4)])
    performances = engine.run_cumulative(records)

    report = build_report(performances, index_departments(records), records)

    assert report.summary["average_sgpa"] == 10.0
    assert report.summary["lowest_sgpa"] == 10.0
    assert report.classification["total_students"] == 2
    assert report.current_classification["total_students"] == 1
    assert report.current_classification["distinction"] == 1
    assert report.needs_improvement == [
        {"registration_number": "S2", "sgpa": None, "arrear_subjects": ["CS101"]}
    ]
    assert report.file_summary[0]["average_sgpa"] == 5.0

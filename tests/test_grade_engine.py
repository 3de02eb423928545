import pytest

from services.credit_validator import IncompleteAssignmentError
from services.grade_engine import GradeLookupError, GradePointEngine, Phase, PhaseOrderError
from tests.conftest import credit, record


def test_scenario_a_sgpa(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()

    sgpa = engine.run_current_semester(scenario_a_records, scenario_a_credits)

    # (4 × 8 + 3 × 6) / 7
    assert sgpa == {"S1": {1: 7.14}}
    assert engine.phase is Phase.CURRENT


def test_single_semester_cgpa_equals_sgpa(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()
    engine.run_current_semester(scenario_a_records, scenario_a_credits)

    (perf,) = engine.run_cumulative(scenario_a_records)

    assert perf.cgpa == 7.14
    assert perf.sgpa_by_semester == {1: 7.14}
    assert [r.grade_point for r in perf.subject_results] == [8, 6]
    assert engine.phase is Phase.CUMULATIVE


def test_credit_order_does_not_change_results(two_semester_records, two_semester_current_credits,
                                              two_semester_cumulative_credits):
    first = GradePointEngine()
    first.run_current_semester(two_semester_records, two_semester_current_credits)
    expected = first.run_cumulative(two_semester_records, two_semester_cumulative_credits)

    second = GradePointEngine()
    second.run_current_semester(two_semester_records, list(reversed(two_semester_current_credits)))
    actual = second.run_cumulative(two_semester_records, list(reversed(two_semester_cumulative_credits)))

    assert [p.cgpa for p in actual] == [p.cgpa for p in expected]
    assert [p.sgpa_by_semester for p in actual] == [p.sgpa_by_semester for p in expected]


def test_current_phase_skips_arrear_subjects(two_semester_records, two_semester_current_credits):
    engine = GradePointEngine()

    sgpa = engine.run_current_semester(two_semester_records, two_semester_current_credits)

    assert engine.current_semesters == (2,)
    assert sgpa == {"S1": {2: 9.57}, "S2": {2: 6.57}}


def test_cumulative_phase(two_semester_records, two_semester_current_credits, two_semester_cumulative_credits):
    engine = GradePointEngine()
    engine.run_current_semester(two_semester_records, two_semester_current_credits)

    s1, s2 = engine.run_cumulative(two_semester_records, two_semester_cumulative_credits)

    assert s1.registration_number == "S1"
    assert s1.sgpa_by_semester == {1: 7.14, 2: 9.57}
    assert s1.current_sgpa == 9.57
    assert s1.cgpa == 7.76
    assert s1.has_arrears is False
    assert [r.subject_code for r in s1.subject_results if r.is_current_semester] == ["CS201", "CS202"]

    assert s2.sgpa_by_semester == {1: 1.71, 2: 6.57}
    assert s2.cgpa == 4.14
    assert s2.has_arrears is True
    assert s2.arrear_subjects == ["CS101"]


def test_failed_credits_can_be_excluded(two_semester_records, two_semester_current_credits,
                                        two_semester_cumulative_credits):
    engine = GradePointEngine(count_failed_credits=False)
    engine.run_current_semester(two_semester_records, two_semester_current_credits)

    _, s2 = engine.run_cumulative(two_semester_records, two_semester_cumulative_credits)

    assert s2.sgpa_by_semester[1] == 4.0
    assert s2.cgpa == 5.8


def test_cumulative_before_current_fails(scenario_a_records):
    engine = GradePointEngine()

    with pytest.raises(PhaseOrderError):
        engine.run_cumulative(scenario_a_records)
    assert engine.phase is Phase.IDLE


def test_cumulative_on_a_different_record_set_fails(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()
    engine.run_current_semester(scenario_a_records, scenario_a_credits)

    with pytest.raises(PhaseOrderError):
        engine.run_cumulative(scenario_a_records + [record("S2", 1, "CS101", "O")])


def test_rerunning_current_phase_drops_cumulative(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()
    engine.run_current_semester(scenario_a_records, scenario_a_credits)
    engine.run_cumulative(scenario_a_records)
    assert engine.performances is not None

    engine.run_current_semester(scenario_a_records, scenario_a_credits)

    assert engine.performances is None
    assert engine.phase is Phase.CURRENT


def test_cumulative_credits_must_cover_earlier_semesters(two_semester_records, two_semester_current_credits):
    engine = GradePointEngine()
    engine.run_current_semester(two_semester_records, two_semester_current_credits)

    with pytest.raises(IncompleteAssignmentError) as exc:
        engine.run_cumulative(two_semester_records)

    assert exc.value.missing_codes == ["CS101"]
    assert engine.phase is Phase.CURRENT


def test_unknown_grade_is_fatal_and_keeps_prior_results(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()
    engine.run_current_semester(scenario_a_records, scenario_a_credits)

    bad = scenario_a_records + [record("S2", 1, "CS101", "Z")]
    with pytest.raises(GradeLookupError) as exc:
        engine.run_current_semester(bad, scenario_a_credits)

    assert exc.value.record.grade == "Z"
    assert engine.current_sgpa == {"S1": {1: 7.14}}


def test_explicit_current_semester_limits_cumulative_scope(two_semester_records, two_semester_cumulative_credits):
    engine = GradePointEngine()
    engine.run_current_semester(two_semester_records, [credit("CS101", 4), credit("CS102", 3)], current_semesters=[1])

    performances = engine.run_cumulative(two_semester_records, two_semester_cumulative_credits)

    assert all(set(p.sgpa_by_semester) == {1} for p in performances)


def test_custom_grade_table():
    engine = GradePointEngine(grade_points={"S": 10, "A": 9, "F": 0}, failing_grades={"F"})
    records = [record("S1", 1, "CS101", "S"), record("S1", 1, "CS102", "F")]

    sgpa = engine.run_current_semester(records, [credit("CS101", 3), credit("CS102", 3)])

    assert sgpa == {"S1": {1: 5.0}}


def test_student_with_only_carried_over_subjects_has_no_current_sgpa():
    records = [
        record("S1", 2, "CS201", "O"),
        record("S2", 1, "CS101", "U"),
        record("S2", 2, "CS101", "P"),
    ]
    credits = [credit("CS101", 4, current=False), credit("CS201", 4)]
    engine = GradePointEngine()

    assert engine.run_current_semester(records, credits) == {"S1": {2: 10.0}}
    s1, s2 = engine.run_cumulative(records)

    assert s1.sgpa_by_semester == {2: 10.0}
    assert s1.current_sgpa == 10.0
    assert s2.sgpa_by_semester == {1: 0.0}
    assert s2.current_sgpa is None
    assert s2.cgpa == 2.0


def test_unknown_grade_outside_current_semester_is_rejected():
    records = [record("S1", 1, "CS101", "A"), record("S1", 2, "CS201", "ZZ")]
    engine = GradePointEngine()

    with pytest.raises(GradeLookupError, match="ZZ"):
        engine.run_current_semester(records, [credit("CS101", 4)], current_semesters=[1])

    assert engine.phase is Phase.IDLE


def test_empty_current_semester_list_is_rejected(scenario_a_records, scenario_a_credits):
    engine = GradePointEngine()

    with pytest.raises(ValueError):
        engine.run_current_semester(scenario_a_records, scenario_a_credits, current_semesters=[])

    assert engine.phase is Phase.IDLE


def test_empty_failing_grade_set_is_respected():
    engine = GradePointEngine(failing_grades=set())
    records = [record("S1", 1, "CS101", "U")]

    engine.run_current_semester(records, [credit("CS101", 4)])
    (performance,) = engine.run_cumulative(records)

    assert engine.is_failing("U") is False
    assert performance.has_arrears is False

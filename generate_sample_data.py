"""
Generate sample result workbooks for the Examination Result Analysis Engine.
Creates:
  - sample_results_sem3.xlsx  (previous semester results)
  - sample_results_sem4.xlsx  (current semester results, incl. re-appeared arrears)
  - sample_credits.json       (credit assignment for every subject)
"""

import json
import random
from pathlib import Path

import pandas as pd

OUTPUT_DIR = Path(__file__).parent / "sample_data"

# ── Student pool ──
STUDENTS = []
for i in range(1, 51):
    STUDENTS.append({
        "REGNO": f"3115221{i:05d}",
        "CNo": random.choice(["CS", "EC"]),
    })

# ── Subjects ──
PREV_SUBJECTS = [
    ("CS3301", "Data Structures", 4),
    ("CS3302", "Digital Logic Design", 3),
    ("MA3301", "Probability and Statistics", 4),
    ("CS3303", "Object Oriented Programming", 3),
    ("HS3301", "Professional Communication", 2),
]

CURR_SUBJECTS = [
    ("CS3401", "Database Management Systems", 4),
    ("CS3402", "Computer Networks", 3),
    ("CS3403", "Operating Systems", 4),
    ("CS3404", "Software Engineering", 3),
    ("MA3401", "Discrete Mathematics", 4),
]

GRADES = ["O", "A+", "A", "B+", "B", "C", "P", "U"]
GRADE_WEIGHTS = [5, 10, 20, 20, 15, 10, 10, 10]


def _grade() -> str:
    return random.choices(GRADES, weights=GRADE_WEIGHTS, k=1)[0]


def generate_results():
    """Generate one workbook per semester; semester 4 repeats failed semester-3 subjects."""
    prev_rows = []
    arrears = []
    for student in STUDENTS:
        for code, _, _ in PREV_SUBJECTS:
            grade = _grade()
            prev_rows.append({"SEM": 3, "REGNO": student["REGNO"], "SCODE": code, "GR": grade, "CNo": student["CNo"]})
            if grade == "U":
                arrears.append((student, code))

    curr_rows = []
    for student in STUDENTS:
        for code, _, _ in CURR_SUBJECTS:
            curr_rows.append({"SEM": 4, "REGNO": student["REGNO"], "SCODE": code, "GR": _grade(), "CNo": student["CNo"]})
    for student, code in arrears:
        curr_rows.append({"SEM": 4, "REGNO": student["REGNO"], "SCODE": code, "GR": _grade(), "CNo": student["CNo"]})

    for name, rows in (("sample_results_sem3.xlsx", prev_rows), ("sample_results_sem4.xlsx", curr_rows)):
        filepath = OUTPUT_DIR / name
        pd.DataFrame(rows, columns=["SEM", "REGNO", "SCODE", "GR", "CNo"]).to_excel(
            filepath, index=False, engine="openpyxl"
        )
        print(f"Results file: {filepath} ({len(rows)} rows)")


def generate_credits():
    """Credit assignment covering every subject; arrear subjects are not current."""
    credits = [
        {"subject_code": code, "credit_value": credit, "subject_name": name,
         "faculty_name": "Dr. Priya Sharma", "is_current_semester": False}
        for code, name, credit in PREV_SUBJECTS
    ] + [
        {"subject_code": code, "credit_value": credit, "subject_name": name,
         "faculty_name": "Dr. Anil Reddy", "is_current_semester": True}
        for code, name, credit in CURR_SUBJECTS
    ]
    filepath = OUTPUT_DIR / "sample_credits.json"
    filepath.write_text(json.dumps({"credits": credits}, indent=2), encoding="utf-8")
    print(f"Credits file: {filepath} ({len(credits)} subjects)")


if __name__ == "__main__":
    OUTPUT_DIR.mkdir(exist_ok=True)
    generate_results()
    generate_credits()
    print("Sample data generation complete!")

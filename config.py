"""Application configuration."""

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent

# Logging
LOG_LEVEL = os.environ.get("RESULT_ANALYZER_LOG_LEVEL", "INFO").upper()

# Upload settings
# .xls → legacy BIFF workbook (xlrd), .xlsx → OOXML workbook (openpyxl)
ALLOWED_EXTENSIONS = {".xlsx", ".xls"}
MAX_FILES_PER_BATCH = 10

# Maximum file size (50 MB)
MAX_FILE_SIZE = 50 * 1024 * 1024

# Input column contract
COL_SEMESTER = "SEM"
COL_REGNO = "REGNO"
COL_SUBJECT = "SCODE"
COL_GRADE = "GR"
COL_DEPARTMENT = "CNo"
REQUIRED_COLUMNS = (COL_SEMESTER, COL_REGNO, COL_SUBJECT, COL_GRADE)
OPTIONAL_COLUMNS = (COL_DEPARTMENT,)

# Used when the CNo column is absent or a cell is blank
IMPLICIT_DEPARTMENT_CODE = "ALL"

# Grade-to-point mapping for SGPA / CGPA calculation
GRADE_POINT_MAP = {
    "O": 10, "A+": 9, "A": 8, "B+": 7, "B": 6,
    "C": 5, "P": 4, "U": 0,
}

# Failed grade indicators (arrears)
FAILING_GRADES = {"U"}

# Failed subjects still add their credits to the SGPA / CGPA denominator
COUNT_FAILED_CREDITS = True

# Credit assignment bounds
CREDIT_MIN = 1
CREDIT_MAX = 10

GPA_DECIMALS = 2

# Classification thresholds
CLASSIFICATION_THRESHOLDS = {
    "distinction": 8.5,
    "first_class": 6.5,
    "second_class": 5.0,
}
NEEDS_IMPROVEMENT_BELOW = 6.5
TOP_PERFORMERS_LIMIT = 10

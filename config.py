"""
Configuration for the Competency Analytics Dashboard

Contains the fixed grading scale and every threshold the indicators and
narratives key off. To change a threshold, simply edit the values below.
"""

# =============================================================================
# GRADING SCALE
# =============================================================================
# Ordered from highest to lowest mastery. Anything else is "not yet graded".

GRADES = ("A", "B", "C", "D")

GRADE_POINTS = {
    "A": 3,
    "B": 2,
    "C": 1,
    "D": 0,
}

MAX_POINTS = 3

# Grades counted as "criterion acquired" (funnel gates, success rates)
PASSING_GRADES = ("A", "B")

# Source spreadsheets use Arabic letters as often as Latin ones
GRADE_ALIASES = {
    "أ": "A",
    "ا": "A",
    "ب": "B",
    "ج": "C",
    "د": "D",
}

# =============================================================================
# CLASSIFICATION THRESHOLDS
# =============================================================================

QUADRANT_THRESHOLD = 50.0   # >= threshold is "high" on an axis

MASTERY_LEVELS = {
    "controlled": 66.0,     # >= 66%
    "partial": 33.0,        # >= 33%
    # below 33% -> "limited"
}

HOMOGENEITY_BANDS = {
    "homogeneous": 15.0,    # std < 15: uniform instruction viable
    "fragmented": 25.0,     # std > 25: differentiated instruction needed
}

EFFICIENCY_ZONES = {
    1: 75.0,                # >= 75%: high efficiency
    2: 50.0,                # >= 50%: medium efficiency
    # below 50% -> zone 3
}

STUDENT_PROFILE_THRESHOLDS = {
    "strong": 60.0,
    "weak": 40.0,
    "foundational": 35.0,
}

STRUGGLING_THRESHOLD = 40.0
STRUGGLING_LIMIT = 6
PRIORITY_CRITERIA_LIMIT = 3

# =============================================================================
# NARRATIVE THRESHOLDS
# =============================================================================

GAP_THRESHOLDS = {
    "wide": 15.0,
    "moderate": 8.0,
}

MATRIX_IMBALANCE_SHARE = 20.0   # % of students in one mixed quadrant
CRITICAL_FAILURE_ALERT = 15.0   # % of students failing every critical criterion
CROSS_SUBJECT_TIGHT_GAP = 15.0  # mean |x - y| below this -> strong link
SUBJECT_BALANCE_GAP = 15.0
SUBJECT_EXCELLENCE = 75.0
SUBJECT_STRUGGLE = 50.0

# =============================================================================
# DATA PATHS
# =============================================================================

RECORDS_PATH = "output/records.json"
REPORT_PATH = "output/report.json"
GRADES_CSV_DIR = "Grade CSV Data"

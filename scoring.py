"""
Competency Scoring

The leaf of the analytics engine: resolve a grade, map it to points, and
reduce a population over a criterion set into points, distributions and
dispersion. Every function is pure; absent grades are skipped, never
counted as D.

Zero denominators follow one rule everywhere: `safe_percentage` returns 0.
"""

import numpy as np
import pandas as pd
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import GRADES, GRADE_POINTS, MAX_POINTS, HOMOGENEITY_BANDS, MASTERY_LEVELS
from load_data import Student
from taxonomy import CriterionPair


def resolve_grade(student: Student, competency_id: str, criterion_id) -> Optional[str]:
    """
    Look up a student's grade for one criterion.

    Criterion keys may be stored as ints or as their string form (JSON
    round-trips turn them into strings); both are accepted.

    Returns:
        "A".."D", or None when ungraded
    """
    criteria = student.results.get(competency_id) if student.results else None
    if not criteria:
        return None

    grade = criteria.get(criterion_id)
    if grade is None:
        grade = criteria.get(str(criterion_id))
    if grade is None and isinstance(criterion_id, str) and criterion_id.strip().isdigit():
        grade = criteria.get(int(criterion_id))

    return grade if grade in GRADE_POINTS else None


def score_point(grade: str) -> int:
    """A->3, B->2, C->1, D->0."""
    if grade not in GRADE_POINTS:
        raise ValueError(f"Not a grade: {grade!r}")
    return GRADE_POINTS[grade]


def safe_percentage(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def iter_grades(population: Iterable[Student], criteria: Iterable[CriterionPair]):
    """Yield every non-absent grade for the population over the criterion set."""
    criteria = tuple(criteria)
    for student in population:
        for competency_id, criterion_id in criteria:
            grade = resolve_grade(student, competency_id, criterion_id)
            if grade is not None:
                yield grade


def score(population: Iterable[Student], criteria: Iterable[CriterionPair]) -> Tuple[int, int]:
    """
    Sum points and maximum possible points over a population.

    Works the same for one student (pass a one-element list) or a whole
    district.

    Returns:
        (points, max_points)
    """
    points = 0
    max_points = 0
    for grade in iter_grades(population, criteria):
        points += score_point(grade)
        max_points += MAX_POINTS
    return points, max_points


def mastery_percentage(population: Iterable[Student], criteria: Iterable[CriterionPair]) -> float:
    """Weighted mastery (points / max points * 100); 0 when nothing is graded."""
    points, max_points = score(population, criteria)
    return safe_percentage(points, max_points)


def student_percentage(student: Student, criteria: Iterable[CriterionPair]) -> float:
    return mastery_percentage([student], criteria)


def student_percentages(population: Iterable[Student], criteria: Iterable[CriterionPair]) -> List[float]:
    criteria = tuple(criteria)
    return [student_percentage(s, criteria) for s in population]


def distribute(population: Iterable[Student], criteria: Iterable[CriterionPair]) -> Dict[str, int]:
    """
    Count raw grade letters across every graded criterion instance.

    Returns:
        {'A': n, 'B': n, 'C': n, 'D': n, 'total': n}; total is the true
        count and may be 0
    """
    counts = {g: 0 for g in GRADES}
    for grade in iter_grades(population, criteria):
        counts[grade] += 1
    counts['total'] = sum(counts[g] for g in GRADES)
    return counts


def distribution_shares(distribution: Dict[str, int]) -> Dict[str, float]:
    """Percentage of graded instances per letter."""
    return {g: safe_percentage(distribution[g], distribution['total']) for g in GRADES}


def homogeneity(percentages: Sequence[float]) -> float:
    """
    Population standard deviation (divide by N) of per-student percentages.

    Below 15 the class is homogeneous, above 25 it is fragmented. Empty and
    singleton populations return 0.
    """
    if len(percentages) < 2:
        return 0.0
    values = np.asarray(percentages, dtype=float)
    if values.max() == values.min():
        return 0.0
    return float(np.std(values, ddof=0))


def homogeneity_band(index: float) -> str:
    if index < HOMOGENEITY_BANDS['homogeneous']:
        return 'homogeneous'
    if index > HOMOGENEITY_BANDS['fragmented']:
        return 'fragmented'
    return 'normal'


def mastery_level(percentage: float) -> str:
    """Bucket a percentage into controlled / partial / limited."""
    if percentage >= MASTERY_LEVELS['controlled']:
        return 'controlled'
    if percentage >= MASTERY_LEVELS['partial']:
        return 'partial'
    return 'limited'


def level_counts(percentages: Iterable[float]) -> Dict[str, int]:
    counts = {'controlled': 0, 'partial': 0, 'limited': 0}
    for pct in percentages:
        counts[mastery_level(pct)] += 1
    return counts


def summarize_percentages(percentages: Sequence[float]) -> Dict[str, float]:
    """
    Median-first summary of per-student percentages.

    IMPORTANT: Median is the PRIMARY metric; average is secondary.
    """
    if len(percentages) == 0:
        return {'median': 0.0, 'average': 0.0, 'min': 0.0, 'max': 0.0, 'std': 0.0, 'count': 0}

    series = pd.Series(percentages, dtype=float)
    return {
        'median': float(series.median()),            # PRIMARY METRIC
        'average': float(round(series.mean(), 1)),   # Secondary metric
        'min': float(series.min()),
        'max': float(series.max()),
        'std': round(homogeneity(percentages), 2),
        'count': int(len(series)),
    }

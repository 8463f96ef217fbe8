"""
Competency Indicators

Population-level indicators built on the scoring primitives: scope
selection, two-axis quadrant matrix, skill funnel, radar profile,
cross-subject linking, criterion heatmap, group ranking and the
remediation indicators.

One generic implementation serves every subject; what differs per subject
lives in taxonomy.AnalysisProfile.
"""

import pandas as pd
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config import (
    QUADRANT_THRESHOLD, PASSING_GRADES, EFFICIENCY_ZONES, STUDENT_PROFILE_THRESHOLDS,
    STRUGGLING_THRESHOLD, STRUGGLING_LIMIT, PRIORITY_CRITERIA_LIMIT,
)
from load_data import ClassRecord, Student
from scoring import (
    resolve_grade, student_percentage, mastery_percentage, distribute, safe_percentage,
    mastery_level,
)
from taxonomy import AnalysisProfile, CriterionSet, FunnelGate, RadarDomain, SubjectDefinition

SCOPES = ('district', 'school', 'class')
QUADRANTS = ('high_high', 'high_low', 'low_high', 'low_low')


# ==================== SCOPE ====================

def select_records(records: Iterable[ClassRecord],
                   scope: str = 'district',
                   school_name: Optional[str] = None,
                   class_name: Optional[str] = None,
                   subject: Optional[str] = None,
                   level: Optional[str] = None) -> List[ClassRecord]:
    """
    Filter class records down to the population an aggregation covers.

    - district: every record
    - school: records of `school_name`
    - class: the records of `class_name` within `school_name`
    Subject and level narrow any scope further.
    """
    if scope not in SCOPES:
        raise ValueError(f"Unknown scope '{scope}', expected one of {SCOPES}")
    if scope in ('school', 'class') and not school_name:
        raise ValueError(f"Scope '{scope}' needs a school name")
    if scope == 'class' and not class_name:
        raise ValueError("Scope 'class' needs a class name")

    selected = []
    for record in records:
        if subject is not None and record.subject != subject:
            continue
        if level is not None and record.level != level:
            continue
        if scope in ('school', 'class') and record.school_name.strip() != school_name.strip():
            continue
        if scope == 'class' and record.class_name.strip() != class_name.strip():
            continue
        selected.append(record)
    return selected


def population(records: Iterable[ClassRecord]) -> List[Student]:
    return [s for r in records for s in r.students]


def group_key(record: ClassRecord, scope: str) -> str:
    """Rankings compare schools across a district, classes otherwise."""
    return record.school_name if scope == 'district' else record.class_name


# ==================== QUADRANT MATRIX ====================

def classify(x_pct: float, y_pct: float, threshold: float = QUADRANT_THRESHOLD) -> str:
    """
    Place a student on the two-axis matrix.

    Each axis is "high" at or above the threshold. A 0% axis (nothing
    graded) is a low score, not an unknown.
    """
    x = 'high' if x_pct >= threshold else 'low'
    y = 'high' if y_pct >= threshold else 'low'
    return f"{x}_{y}"


def quadrant_counts(points: Iterable[Tuple[float, float]]) -> Dict[str, int]:
    counts = {q: 0 for q in QUADRANTS}
    for x_pct, y_pct in points:
        counts[classify(x_pct, y_pct)] += 1
    counts['total'] = sum(counts[q] for q in QUADRANTS)
    return counts


def quadrant_shares(counts: Dict[str, int]) -> Dict[str, float]:
    return {q: safe_percentage(counts[q], counts['total']) for q in QUADRANTS}


@dataclass
class StudentAxes:
    """One student's position on a profile's indicators."""
    full_name: str
    school_name: str
    class_name: str
    percentage: float
    x_pct: float
    y_pct: float
    quadrant: str
    level: str


def analyze_students(records: Iterable[ClassRecord], profile: AnalysisProfile) -> List[StudentAxes]:
    all_criteria = profile.all_criteria
    rows = []
    for record in records:
        for student in record.students:
            pct = student_percentage(student, all_criteria)
            x_pct = student_percentage(student, profile.x_axis.criteria)
            y_pct = student_percentage(student, profile.y_axis.criteria)
            rows.append(StudentAxes(
                full_name=student.full_name,
                school_name=record.school_name,
                class_name=record.class_name,
                percentage=pct,
                x_pct=x_pct,
                y_pct=y_pct,
                quadrant=classify(x_pct, y_pct),
                level=mastery_level(pct),
            ))
    return rows


def diagnose_student(x_pct: float, y_pct: float) -> str:
    """
    Individual profile from the two axes.

    Unlike `classify`, this looks for pronounced imbalances only.
    """
    strong = STUDENT_PROFILE_THRESHOLDS['strong']
    weak = STUDENT_PROFILE_THRESHOLDS['weak']
    foundational = STUDENT_PROFILE_THRESHOLDS['foundational']

    if x_pct >= strong and y_pct < weak:
        return 'resources_without_application'
    if x_pct < weak and y_pct >= strong:
        return 'application_without_resources'
    if x_pct < foundational and y_pct < foundational:
        return 'foundational_gap'
    return 'balanced'


def didactic_gap(students: Sequence[Student], x_criteria: CriterionSet, y_criteria: CriterionSet) -> Dict[str, float]:
    """Population mastery on axis X minus axis Y."""
    x_pct = mastery_percentage(students, x_criteria)
    y_pct = mastery_percentage(students, y_criteria)
    return {'x_pct': x_pct, 'y_pct': y_pct, 'gap': x_pct - y_pct}


# ==================== FUNNEL ====================

@dataclass
class FunnelStage:
    label: str
    count: int
    percentage: float
    retention: Optional[float]   # vs previous gate's count; None for the first gate


GateLike = Union[FunnelGate, Tuple[str, Callable[[Student], bool]]]


def gate_predicate(gate: FunnelGate) -> Callable[[Student], bool]:
    """Passing grade on any (or all) of the gate's criteria."""
    def passes(student: Student) -> bool:
        results = [
            resolve_grade(student, comp_id, crit_id) in PASSING_GRADES
            for comp_id, crit_id in gate.criteria
        ]
        return all(results) if gate.mode == 'all' else any(results)
    return passes


def funnel(students: Sequence[Student], gates: Sequence[GateLike]) -> List[FunnelStage]:
    """
    Count students clearing each skill gate, in gate order.

    Gates are independent skill checks, not nested subsets: a student may
    clear gate 3 without clearing gate 2. Retention is this gate's count
    over the previous gate's raw count; after a gate nobody cleared it is 0.
    """
    stages = []
    previous = None
    for gate in gates:
        if isinstance(gate, FunnelGate):
            label, predicate = gate.label, gate_predicate(gate)
        else:
            label, predicate = gate
        count = sum(1 for s in students if predicate(s))
        retention = None if previous is None else safe_percentage(count, previous)
        stages.append(FunnelStage(
            label=label,
            count=count,
            percentage=safe_percentage(count, len(students)),
            retention=retention,
        ))
        previous = count
    return stages


def funnel_drop_rate(population_size: int, stages: Sequence[FunnelStage]) -> float:
    """Share of the population that does not reach the last gate."""
    if not stages:
        return 0.0
    return safe_percentage(population_size - stages[-1].count, population_size)


# ==================== RADAR ====================

@dataclass
class RadarPoint:
    label: str
    percentage: float


def radar_profile(students: Sequence[Student], domains: Sequence[RadarDomain]) -> List[RadarPoint]:
    """Independent mastery per domain, in domain order. Overlap is not checked."""
    return [RadarPoint(d.label, mastery_percentage(students, d.criteria)) for d in domains]


def weakest_domain(profile: Sequence[RadarPoint]) -> Optional[RadarPoint]:
    if not profile:
        return None
    return min(profile, key=lambda p: p.percentage)


# ==================== CROSS-SUBJECT LINK ====================

@dataclass
class LinkedPair:
    full_name: str
    school_name: str
    class_name: str
    x_pct: float
    y_pct: float


def identity_key(record: ClassRecord, student: Student) -> Tuple[str, str, str]:
    """Natural identity across subjects: trimmed school, class and full name (case-sensitive)."""
    return (record.school_name.strip(), record.class_name.strip(), student.full_name.strip())


def link(records_a: Iterable[ClassRecord], criteria_a: CriterionSet,
         records_b: Iterable[ClassRecord], criteria_b: CriterionSet,
         key_fn: Callable[[ClassRecord, Student], Tuple] = identity_key) -> List[LinkedPair]:
    """
    Pair each student of population A with the same student in population B.

    x is scored on A's criteria, y on B's. Students of A without a match in
    B are dropped; when B repeats a key, the last one wins.
    """
    lookup = {}
    for record in records_b:
        for student in record.students:
            lookup[key_fn(record, student)] = student

    pairs = []
    for record in records_a:
        for student in record.students:
            match = lookup.get(key_fn(record, student))
            if match is None:
                continue
            pairs.append(LinkedPair(
                full_name=student.full_name.strip(),
                school_name=record.school_name,
                class_name=record.class_name,
                x_pct=student_percentage(student, criteria_a),
                y_pct=student_percentage(match, criteria_b),
            ))
    return pairs


def mean_gap(pairs: Sequence[LinkedPair]) -> float:
    """Mean |x - y| across linked students; 0 with no pairs."""
    if not pairs:
        return 0.0
    return sum(abs(p.x_pct - p.y_pct) for p in pairs) / len(pairs)


def subject_scores(records: Iterable[ClassRecord]) -> Dict[str, float]:
    """
    Aggregate mastery per subject over every recorded criterion.

    Used to compare subjects taught by the same teacher or in the same class.
    """
    by_subject: Dict[str, List[Student]] = {}
    criteria_by_subject: Dict[str, set] = {}
    for record in records:
        by_subject.setdefault(record.subject, []).extend(record.students)
        pairs = criteria_by_subject.setdefault(record.subject, set())
        for student in record.students:
            for comp_id, criteria in student.results.items():
                pairs.update((comp_id, str(crit_id)) for crit_id in criteria)

    return {
        subject: mastery_percentage(students, sorted(criteria_by_subject[subject]))
        for subject, students in by_subject.items()
    }


# ==================== CRITERION HEATMAP & RANKING ====================

def criterion_success(students: Sequence[Student], definition: SubjectDefinition) -> List[Dict]:
    """
    Grade counts and success rate ((A+B) / graded) for every criterion.

    Returns:
        List of dicts sorted weakest first
    """
    rows = []
    for competency in definition.competencies:
        for criterion in competency.criteria:
            stats = distribute(students, [(competency.id, criterion.id)])
            rows.append({
                'competency_id': competency.id,
                'criterion_id': criterion.id,
                'label': criterion.label,
                'stats': stats,
                'success_rate': safe_percentage(stats['A'] + stats['B'], stats['total']),
            })
    return sorted(rows, key=lambda r: r['success_rate'])


def rank_groups(records: Iterable[ClassRecord], scope: str, profile: AnalysisProfile) -> pd.DataFrame:
    """
    Mean per-student mastery for each school (district scope) or class.

    Returns:
        DataFrame with Group, Students, Global, X axis, Y axis columns,
        sorted by Global descending
    """
    columns = ['Group', 'Students', 'Global', profile.x_axis.label, profile.y_axis.label]
    rows = []
    for record in records:
        key = group_key(record, scope)
        for student in record.students:
            rows.append({
                'Group': key,
                'Global': student_percentage(student, profile.all_criteria),
                profile.x_axis.label: student_percentage(student, profile.x_axis.criteria),
                profile.y_axis.label: student_percentage(student, profile.y_axis.criteria),
            })

    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows)
    ranking = df.groupby('Group', sort=False).agg(
        Students=('Global', 'size'),
        Global=('Global', 'mean'),
        **{
            profile.x_axis.label: (profile.x_axis.label, 'mean'),
            profile.y_axis.label: (profile.y_axis.label, 'mean'),
        }
    ).reset_index()
    return ranking[columns].sort_values('Global', ascending=False).reset_index(drop=True)


# ==================== REMEDIATION INDICATORS ====================

def efficiency_index(students: Sequence[Student], criteria: CriterionSet) -> float:
    """Share of graded criterion instances at A or B."""
    stats = distribute(students, criteria)
    return safe_percentage(stats['A'] + stats['B'], stats['total'])


def efficiency_zone(index: float) -> int:
    if index >= EFFICIENCY_ZONES[1]:
        return 1
    if index >= EFFICIENCY_ZONES[2]:
        return 2
    return 3


def priority_criteria(students: Sequence[Student], definition: SubjectDefinition,
                      limit: int = PRIORITY_CRITERIA_LIMIT) -> List[Dict]:
    """
    Criteria with the most C/D grades, as a share of the population size.
    """
    rows = []
    for competency in definition.competencies:
        for criterion in competency.criteria:
            stats = distribute(students, [(competency.id, criterion.id)])
            fail_count = stats['C'] + stats['D']
            if fail_count == 0:
                continue
            rows.append({
                'competency_id': competency.id,
                'criterion_id': criterion.id,
                'label': criterion.label,
                'fail_count': fail_count,
                'fail_rate': safe_percentage(fail_count, len(students)),
            })
    rows.sort(key=lambda r: r['fail_rate'], reverse=True)
    return rows[:limit]


def structured_indicators(distribution: Dict[str, int]) -> Dict[str, float]:
    """School/teacher/subject indicators read straight off a grade distribution."""
    total = distribution['total']
    excellence = safe_percentage(distribution['A'], total)
    efficiency = safe_percentage(distribution['A'] + distribution['B'], total)
    return {
        'excellence_count': distribution['A'],
        'excellence_rate': excellence,
        'efficiency': efficiency,
        'remediation_load': distribution['C'] + distribution['D'],
        'remediation_rate': safe_percentage(distribution['C'] + distribution['D'], total),
        'pedagogical_gap': efficiency - excellence,
        'partial_rate': safe_percentage(distribution['B'], total),
        'failure_rate': safe_percentage(distribution['D'], total),
    }


def critical_failure_rate(students: Sequence[Student], criteria: CriterionSet) -> float:
    """Share of students graded D on every criterion of the set."""
    if not criteria:
        return 0.0
    failed = sum(
        1 for s in students
        if all(resolve_grade(s, comp_id, crit_id) == 'D' for comp_id, crit_id in criteria)
    )
    return safe_percentage(failed, len(students))


def struggling_students(records: Iterable[ClassRecord], definition: SubjectDefinition,
                        competency_id: str,
                        threshold: float = STRUGGLING_THRESHOLD,
                        limit: int = STRUGGLING_LIMIT) -> List[Dict]:
    """
    Students below the threshold on one competency, weakest first.

    Each entry names the first criterion graded D, if any.
    """
    competency = definition.competency(competency_id)
    criteria = definition.criteria(competency_id)
    rows = []
    for record in records:
        for student in record.students:
            pct = student_percentage(student, criteria)
            if pct >= threshold:
                continue
            worst = next(
                (c.label for c in competency.criteria
                 if resolve_grade(student, competency_id, c.id) == 'D'),
                None
            )
            rows.append({
                'full_name': student.full_name,
                'school_name': record.school_name,
                'class_name': record.class_name,
                'percentage': pct,
                'worst_criterion': worst,
            })
    rows.sort(key=lambda r: r['percentage'])
    return rows[:limit]

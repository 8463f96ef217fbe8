"""
Data Fidelity Test Suite

Validates that:
1. Every student in the grade CSV is accounted for in the report
2. Grade counts in the report match the CSV exactly
3. Per-student percentages match a direct computation from the CSV
4. No data corruption through the JSON record store

Expected values are computed straight from the CSV with pandas, never
through the scoring module.

Run: pytest test_data_fidelity.py -v
"""

import pandas as pd
import pytest

from load_data import parse_grades_csv, save_records, load_records, CSV_COLUMNS
from report import build_subject_report
from taxonomy import get_profile

POINTS = {'A': 3, 'B': 2, 'C': 1, 'D': 0}
CLASSES = [('S1', 'C1'), ('S1', 'C2'), ('S2', 'C1')]
STUDENTS_PER_CLASS = 4


@pytest.fixture
def profile():
    return get_profile('math_y4')


@pytest.fixture
def source_df(profile):
    """Deterministic long-format grades; one criterion per class left blank."""
    rows = []
    criteria = profile.all_criteria
    for c, (school, class_name) in enumerate(CLASSES):
        for i in range(STUDENTS_PER_CLASS):
            for k, (comp_id, crit_id) in enumerate(criteria):
                grade = 'ABCD'[(c + i * 2 + k) % 4]
                if i == 0 and k == len(criteria) - 1:
                    grade = ''
                rows.append({
                    'School': school,
                    'Class': class_name,
                    'Level': '4AP',
                    'Subject': 'math',
                    'Student Name': f"Student {school}-{class_name}-{i}",
                    'Competency': comp_id,
                    'Criterion': crit_id,
                    'Grade': grade,
                })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


@pytest.fixture
def records(source_df, tmp_path):
    path = tmp_path / "grades.csv"
    source_df.to_csv(path, index=False, encoding='utf-8')
    return parse_grades_csv(str(path))


@pytest.fixture
def expected_percentages(source_df):
    graded = source_df[source_df['Grade'] != ''].copy()
    graded['points'] = graded['Grade'].map(POINTS)
    per_student = graded.groupby(['School', 'Class', 'Student Name'])['points'].agg(['sum', 'count'])
    return (per_student['sum'] / (per_student['count'] * 3) * 100).to_dict()


class TestStudentCoverage:
    """All students accounted for"""

    def test_student_count(self, records, profile, source_df):
        report = build_subject_report(records, profile)
        assert report['total_students'] == source_df['Student Name'].nunique()

    def test_every_student_in_report(self, records, profile, source_df):
        report = build_subject_report(records, profile)
        reported = {(s['school_name'], s['class_name'], s['full_name']) for s in report['students']}
        expected = set(source_df[['School', 'Class', 'Student Name']].itertuples(index=False, name=None))
        assert reported == expected

    def test_class_mapping(self, records, profile):
        for school, class_name in CLASSES:
            report = build_subject_report(records, profile, 'class', school, class_name)
            assert report['total_students'] == STUDENTS_PER_CLASS
            assert {s['class_name'] for s in report['students']} == {class_name}

    def test_ranking_covers_all_students(self, records, profile):
        report = build_subject_report(records, profile)
        assert sum(r['Students'] for r in report['ranking']) == report['total_students']


class TestScoreFidelity:
    """Report numbers match the CSV"""

    def test_grade_counts(self, records, profile, source_df):
        report = build_subject_report(records, profile)
        counts = source_df['Grade'].value_counts()
        for grade in 'ABCD':
            assert report['distribution'][grade] == counts.get(grade, 0)
        assert report['distribution']['total'] == (source_df['Grade'] != '').sum()

    def test_student_percentages(self, records, profile, expected_percentages):
        report = build_subject_report(records, profile)
        for student in report['students']:
            key = (student['school_name'], student['class_name'], student['full_name'])
            assert student['percentage'] == pytest.approx(expected_percentages[key])

    def test_median(self, records, profile, expected_percentages):
        report = build_subject_report(records, profile)
        expected = pd.Series(list(expected_percentages.values())).median()
        assert report['statistics']['median'] == pytest.approx(expected)

    def test_blank_grade_not_counted_as_d(self, records, profile, expected_percentages):
        report = build_subject_report(records, profile)
        first = next(s for s in report['students'] if s['full_name'].endswith('-0'))
        key = (first['school_name'], first['class_name'], first['full_name'])
        assert first['percentage'] == pytest.approx(expected_percentages[key])


class TestRecordStoreFidelity:
    """Numbers survive the JSON record store"""

    def test_same_report_after_reload(self, records, profile, tmp_path):
        path = tmp_path / "records.json"
        save_records(records, str(path))
        reloaded = load_records(str(path))

        before = build_subject_report(records, profile)
        after = build_subject_report(reloaded, profile)
        assert after['distribution'] == before['distribution']
        assert after['statistics'] == before['statistics']
        assert after['funnel'] == before['funnel']
        assert after['narratives'] == before['narratives']

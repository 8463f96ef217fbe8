"""
Tests for grade normalization, CSV import, the JSON record store and
source validation.

Run: pytest test_load_data.py -v
"""

import json

import pytest

from load_data import (
    normalize_grade, normalize_name, parse_grades_csv, load_all_grade_csvs,
    load_records, save_records, validate_records, CSV_COLUMNS,
)
from scoring import resolve_grade
from taxonomy import SUBJECT_DEFINITIONS

GRADES_CSV = """School,Class,Level,Subject,Student Name,Competency,Criterion,Grade
S1,C1,4AP,math,Amine,control_resources,1,A
S1,C1,4AP,math,Amine,control_resources,2, b
S1,C1,4AP,math,Sara,control_resources,1,ب
S1,C1,4AP,math,Sara,control_resources,2,absent
S1,C1,4AP,arabic,Amine,reading_perf,1,C
S2,C3,4AP,math,"  Lina  ",control_resources,1,D
S2,C3,4AP,math,,control_resources,1,A
S2,C3,4AP,math,Lina,control_resources,x,A
"""


@pytest.fixture
def grades_csv(tmp_path):
    path = tmp_path / "grades.csv"
    path.write_text(GRADES_CSV, encoding='utf-8')
    return path


class TestNormalizeGrade:
    """Raw cell to A/B/C/D or None"""

    @pytest.mark.parametrize('cell, expected', [
        ('A', 'A'),
        (' a ', 'A'),
        ('d', 'D'),
        ('أ', 'A'),
        ('ب', 'B'),
        ('ج', 'C'),
        ('د', 'D'),
    ])
    def test_grades(self, cell, expected):
        assert normalize_grade(cell) == expected

    @pytest.mark.parametrize('cell', ['', '   ', 'E', 'absent', None, float('nan'), 'Amine'])
    def test_not_grades(self, cell):
        assert normalize_grade(cell) is None

    def test_normalize_name(self):
        assert normalize_name('  Ali   "Ben" ') == 'Ali Ben'


class TestParseGradesCsv:
    """Long-format CSV import"""

    def test_one_record_per_class_subject(self, grades_csv):
        records = parse_grades_csv(str(grades_csv))
        assert [(r.school_name, r.class_name, r.subject) for r in records] == [
            ('S1', 'C1', 'math'), ('S1', 'C1', 'arabic'), ('S2', 'C3', 'math'),
        ]
        assert records[0].id == 'S1/C1/math/4AP'

    def test_grades_normalized(self, grades_csv):
        math = parse_grades_csv(str(grades_csv))[0]
        amine, sara = math.students
        assert amine.results == {'control_resources': {1: 'A', 2: 'B'}}
        assert sara.results == {'control_resources': {1: 'B', 2: None}}

    def test_students_in_file_order_with_generated_ids(self, grades_csv):
        math = parse_grades_csv(str(grades_csv))[0]
        assert [s.full_name for s in math.students] == ['Amine', 'Sara']
        assert [s.id for s in math.students] == ['S1/C1/1', 'S1/C1/2']

    def test_blank_names_and_bad_criteria_skipped(self, grades_csv):
        s2 = parse_grades_csv(str(grades_csv))[2]
        assert [s.full_name for s in s2.students] == ['Lina']
        assert s2.students[0].results == {'control_resources': {1: 'D'}}

    def test_student_id_column(self, tmp_path):
        path = tmp_path / "ids.csv"
        path.write_text(
            "School,Class,Level,Subject,Student Name,Student ID,Competency,Criterion,Grade\n"
            "S1,C1,4AP,math,Amine,123,control_resources,1,A\n",
            encoding='utf-8'
        )
        assert parse_grades_csv(str(path))[0].students[0].id == '123'

    def test_missing_column_raises(self, tmp_path):
        path = tmp_path / "broken.csv"
        path.write_text(",".join(CSV_COLUMNS[:-1]) + "\nS1,C1,4AP,math,Amine,c,1\n", encoding='utf-8')
        with pytest.raises(ValueError, match='Grade'):
            parse_grades_csv(str(path))


class TestLoadAllGradeCsvs:
    """Bulk directory import"""

    def test_no_files(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_all_grade_csvs(str(tmp_path))

    def test_bad_file_skipped_with_warning(self, tmp_path, capsys):
        (tmp_path / "a_good.csv").write_text(GRADES_CSV, encoding='utf-8')
        (tmp_path / "b_bad.csv").write_text("Name,Score\nAmine,3\n", encoding='utf-8')

        records = load_all_grade_csvs(str(tmp_path))
        assert len(records) == 3

        output = capsys.readouterr().out
        assert "Warning: Failed to parse b_bad.csv" in output
        assert "Loaded: a_good.csv -> S1 C1 math 4AP (2 students)" in output

    def test_nothing_loadable(self, tmp_path):
        (tmp_path / "bad.csv").write_text("Name,Score\nAmine,3\n", encoding='utf-8')
        with pytest.raises(ValueError):
            load_all_grade_csvs(str(tmp_path))


class TestRecordStore:
    """JSON record store"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_records(str(tmp_path / "missing.json"))

    def test_save_and_load(self, tmp_path, math_y4_records):
        path = tmp_path / "out" / "records.json"
        save_records(math_y4_records, str(path))
        loaded = load_records(str(path))

        assert [r.school_name for r in loaded] == ['S1', 'S2']
        sara = loaded[0].students[1]
        assert sara.full_name == 'Sara'
        # JSON turns criterion keys into strings; lookups still resolve
        assert resolve_grade(sara, 'control_resources', 3) == 'B'
        assert resolve_grade(loaded[1].students[1], 'methodological_solving', 1) is None

    def test_camel_case_keys(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps({'records': [{
            'id': 'r1',
            'schoolName': 'S1',
            'className': 'C1',
            'level': '4AP',
            'subject': 'math',
            'academicYear': '2024/2025',
            'students': [{'id': 7, 'fullName': 'Amine',
                          'results': {'control_resources': {'1': 'A', '2': 'ج', '3': 'x'}}}],
        }]}, ensure_ascii=False), encoding='utf-8')

        record = load_records(str(path))[0]
        assert record.school_name == 'S1'
        assert record.academic_year == '2024/2025'
        student = record.students[0]
        assert student.id == '7'
        assert student.results == {'control_resources': {'1': 'A', '2': 'C', '3': None}}


class TestValidateRecords:
    """Source data warnings"""

    def test_clean_records(self, all_records):
        assert validate_records(all_records, SUBJECT_DEFINITIONS) == {'warnings': []}

    def test_unknown_subject(self, make_record, make_student):
        records = [make_record('S1', 'C1', 'music', '4AP', [make_student('Amine', {'rhythm': 'A'})])]
        warnings = validate_records(records, SUBJECT_DEFINITIONS)['warnings']
        assert len(warnings) == 1
        assert 'No taxonomy' in warnings[0]

    def test_unknown_criterion(self, make_record, make_student):
        records = [make_record('S1', 'C1', 'math', '4AP', [
            make_student('Amine', {'control_resources': 'AAAA'}),
        ])]
        warnings = validate_records(records, SUBJECT_DEFINITIONS)['warnings']
        assert len(warnings) == 1
        assert 'control_resources/4' in warnings[0]

    def test_duplicate_names(self, make_record, make_student):
        records = [make_record('S1', 'C1', 'math', '4AP', [
            make_student('Amine', {'control_resources': 'A'}),
            make_student('Amine ', {'control_resources': 'B'}),
        ])]
        warnings = validate_records(records, SUBJECT_DEFINITIONS)['warnings']
        assert warnings == ["  [S1 C1 math 4AP] Duplicate student name: 'Amine'"]

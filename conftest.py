"""
Shared pytest fixtures: small hand-checked class records.

Grades are written as one string per competency, one character per
criterion in taxonomy order; '-' leaves the criterion ungraded.

Run: pytest -v
"""

import pytest

from load_data import ClassRecord, Student


def _make_student(full_name: str, grades: dict) -> Student:
    results = {
        comp_id: {i: (None if g == '-' else g) for i, g in enumerate(letters, start=1)}
        for comp_id, letters in grades.items()
    }
    return Student(full_name=full_name, results=results)


def _make_record(school_name: str, class_name: str, subject: str, level: str, students: list) -> ClassRecord:
    return ClassRecord(
        school_name=school_name,
        class_name=class_name,
        level=level,
        subject=subject,
        students=students,
        id=f"{school_name}/{class_name}/{subject}/{level}",
    )


@pytest.fixture
def make_student():
    return _make_student


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def math_y4_records():
    """
    Two schools of Year 4 math.

    Amine    resources 100.0  methodology 100.0
    Sara     resources  88.9  methodology   0.0
    Yacine   resources   0.0  methodology   0.0
    Lina     resources  66.7  methodology  66.7
    Omar     resources  33.3  methodology  (nothing graded)
    """
    return [
        _make_record('S1', 'C1', 'math', '4AP', [
            _make_student('Amine', {'control_resources': 'AAA', 'methodological_solving': 'AAAA'}),
            _make_student('Sara', {'control_resources': 'AAB', 'methodological_solving': 'DDDD'}),
            _make_student('Yacine', {'control_resources': 'DDD', 'methodological_solving': 'DDDD'}),
        ]),
        _make_record('S2', 'C1', 'math', '4AP', [
            _make_student('Lina', {'control_resources': 'BBB', 'methodological_solving': 'BBBB'}),
            _make_student('Omar', {'control_resources': 'CCC', 'methodological_solving': '----'}),
        ]),
    ]


@pytest.fixture
def arabic_y4_records():
    """
    Year 4 Arabic for the same classes. "Sara " carries a trailing space,
    "Ali Ben" has no math record, Yacine and Omar have no Arabic record.
    """
    return [
        _make_record('S1', 'C1', 'arabic', '4AP', [
            _make_student('Amine', {'oral_comms': 'AAAAA', 'reading_perf': 'AAAA',
                                    'written_comp': 'AAAAA', 'written_prod': 'AAAAA'}),
            _make_student('Sara ', {'oral_comms': 'BBBBB', 'reading_perf': 'BBBB',
                                    'written_comp': 'CCCCC', 'written_prod': 'CCCCC'}),
            _make_student('Ali Ben', {'oral_comms': 'CCCCC', 'reading_perf': 'CCCC',
                                      'written_comp': 'DDDDD', 'written_prod': 'DDDDD'}),
        ]),
        _make_record('S2', 'C1', 'arabic', '4AP', [
            _make_student('Lina', {'oral_comms': 'DDDDD', 'reading_perf': 'DDDD',
                                   'written_comp': 'DDDDD', 'written_prod': 'DDDDD'}),
        ]),
    ]


@pytest.fixture
def all_records(math_y4_records, arabic_y4_records):
    return math_y4_records + arabic_y4_records


@pytest.fixture
def year5_records():
    """
    Year 5 history and Arabic reading.

    S1/C1  Amine    reading  66.7  history 100.0
    S1/C1  Sara     reading 100.0  history  33.3
    S1/C1  Nour     (no Arabic record)  history  66.7
    S2/C1  Amine    reading   0.0  (no history record)
    """
    return [
        _make_record('S1', 'C1', 'history', '5AP', [
            _make_student('Amine', {'general_history': 'AAA', 'national_history': 'AAAA'}),
            _make_student('Sara', {'general_history': 'CCC', 'national_history': 'CCCC'}),
            _make_student('Nour', {'general_history': 'BBB', 'national_history': 'BBBB'}),
        ]),
        _make_record('S1', 'C1', 'arabic', '5AP', [
            _make_student('Amine', {'reading_perf': 'BBBB'}),
            _make_student('Sara ', {'reading_perf': 'AAAA'}),
        ]),
        _make_record('S2', 'C1', 'arabic', '5AP', [
            _make_student('Amine', {'reading_perf': 'DDDD'}),
        ]),
    ]

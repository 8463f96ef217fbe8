"""
Competency Grade Data Loader

Loads per-student, per-criterion competency grades and turns them into
ClassRecord objects the analytics engine reads.

Two sources are supported:
- Record store (JSON): the dashboard's saved records, one entry per
  uploaded class sheet, in either camelCase or snake_case keys
- Grade CSVs (long format): one row per (student, competency, criterion)
  with columns School, Class, Level, Subject, Student Name, Competency,
  Criterion, Grade (Academic Year and Student ID optional)

Grades are normalized to A/B/C/D on load; anything else is stored as None
(ungraded) and never coerced to D.
"""

import json
import re
import pandas as pd
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, asdict, field

from config import GRADES, GRADE_ALIASES, RECORDS_PATH, GRADES_CSV_DIR


@dataclass
class Student:
    """One assessed student."""
    full_name: str
    # competency_id -> criterion_id -> grade letter (or None)
    results: Dict[str, Dict[Any, Optional[str]]] = field(default_factory=dict)
    id: str = ""


@dataclass
class ClassRecord:
    """One class's grade sheet for one subject."""
    school_name: str
    class_name: str
    level: str
    subject: str
    students: List[Student] = field(default_factory=list)
    academic_year: str = ""
    id: str = ""


CSV_COLUMNS = ['School', 'Class', 'Level', 'Subject', 'Student Name', 'Competency', 'Criterion', 'Grade']


def normalize_grade(cell: Any) -> Optional[str]:
    """
    Normalize a raw grade cell to "A".."D", or None when it is not a grade.

    Handles variations like:
    - " a " -> "A"
    - "ب" -> "B"
    - "", "E", "absent", NaN -> None
    """
    if cell is None or (isinstance(cell, float) and pd.isna(cell)):
        return None
    text = str(cell).strip()
    # Names and comments are longer than any grade notation
    if not text or len(text) > 2:
        return None
    text = GRADE_ALIASES.get(text, text).upper()
    return text if text in GRADES else None


def normalize_name(name: str) -> str:
    """Collapse internal whitespace and strip quotes from a student name."""
    return re.sub(r'\s+', ' ', str(name).replace('"', '').replace("'", '')).strip()


# ==================== RECORD STORE (JSON) ====================

def _get(data: Dict[str, Any], snake: str, camel: str, default: Any = "") -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def student_from_dict(data: Dict[str, Any]) -> Student:
    results = {
        str(comp_id): {crit_id: normalize_grade(grade) for crit_id, grade in (criteria or {}).items()}
        for comp_id, criteria in (data.get('results') or {}).items()
    }
    return Student(
        full_name=_get(data, 'full_name', 'fullName'),
        results=results,
        id=str(data.get('id', '')),
    )


def record_from_dict(data: Dict[str, Any]) -> ClassRecord:
    return ClassRecord(
        school_name=_get(data, 'school_name', 'schoolName'),
        class_name=_get(data, 'class_name', 'className'),
        level=data.get('level', ''),
        subject=data.get('subject', ''),
        students=[student_from_dict(s) for s in data.get('students', [])],
        academic_year=_get(data, 'academic_year', 'academicYear'),
        id=str(data.get('id', '')),
    )


def load_records(json_path: str = RECORDS_PATH) -> List[ClassRecord]:
    """Load class records saved by the dashboard or by `save_records`."""
    path = Path(json_path)
    if not path.exists():
        raise FileNotFoundError(f"Record store not found: {json_path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return [record_from_dict(r) for r in data.get('records', [])]


def save_records(records: List[ClassRecord], output_path: str = RECORDS_PATH) -> None:
    """Save class records to the JSON record store."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump({'records': [asdict(r) for r in records]}, f, indent=2, ensure_ascii=False)
    print(f"\nRecords saved to {output_path}")


# ==================== GRADE CSV IMPORT ====================

def parse_grades_csv(file_path: str) -> List[ClassRecord]:
    """
    Parse a long-format grade CSV into class records.

    One ClassRecord per (School, Class, Level, Subject); students keep the
    order in which they first appear in the file.

    Returns:
        List of ClassRecord objects
    """
    df = pd.read_csv(file_path, encoding='utf-8', dtype=str)

    # Clean column names
    df.columns = df.columns.str.strip()

    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{file_path} is missing columns: {', '.join(missing)}")

    df = df[df['Student Name'].notna() & (df['Student Name'].str.strip() != '')].copy()
    for col in ['School', 'Class', 'Level', 'Subject', 'Competency']:
        df[col] = df[col].fillna('').str.strip()
    df['Student Name'] = df['Student Name'].apply(normalize_name)
    df['Criterion'] = pd.to_numeric(df['Criterion'], errors='coerce')
    df = df[df['Criterion'].notna()].copy()
    df['Criterion'] = df['Criterion'].astype(int)

    records = []
    for (school, class_name, level, subject), class_df in df.groupby(
            ['School', 'Class', 'Level', 'Subject'], sort=False):
        students = []
        for student_name, student_df in class_df.groupby('Student Name', sort=False):
            results: Dict[str, Dict[Any, Optional[str]]] = {}
            for _, row in student_df.iterrows():
                results.setdefault(row['Competency'], {})[int(row['Criterion'])] = normalize_grade(row['Grade'])

            student_id = ''
            if 'Student ID' in student_df.columns and pd.notna(student_df['Student ID'].iloc[0]):
                student_id = str(student_df['Student ID'].iloc[0]).strip()

            students.append(Student(
                full_name=student_name,
                results=results,
                id=student_id or f"{school}/{class_name}/{len(students) + 1}",
            ))

        academic_year = ''
        if 'Academic Year' in class_df.columns and class_df['Academic Year'].notna().any():
            academic_year = str(class_df['Academic Year'].dropna().iloc[0]).strip()

        records.append(ClassRecord(
            school_name=school,
            class_name=class_name,
            level=level,
            subject=subject,
            students=students,
            academic_year=academic_year,
            id=f"{school}/{class_name}/{subject}/{level}",
        ))

    return records


def load_all_grade_csvs(data_dir: str = GRADES_CSV_DIR) -> List[ClassRecord]:
    """
    Load all grade CSV files from the data directory.

    Returns:
        Combined list of ClassRecord objects
    """
    data_path = Path(data_dir)
    csv_files = sorted(data_path.glob("*.csv"))

    if not csv_files:
        raise FileNotFoundError(f"No CSV files found in {data_dir}")

    records = []
    for csv_file in csv_files:
        try:
            file_records = parse_grades_csv(str(csv_file))
        except (ValueError, pd.errors.ParserError) as e:
            print(f"  Warning: Failed to parse {csv_file.name}: {e}")
            continue
        records.extend(file_records)
        for r in file_records:
            print(f"  Loaded: {csv_file.name} -> {r.school_name} {r.class_name} "
                  f"{r.subject} {r.level} ({len(r.students)} students)")

    if not records:
        raise ValueError("No grade data could be loaded")

    return records


# ==================== VALIDATION ====================

def validate_records(records: List[ClassRecord], definitions: Dict[str, Any]) -> Dict[str, List[str]]:
    """
    Check loaded records against the taxonomy.

    Args:
        records: Loaded class records
        definitions: SubjectDefinition objects keyed by id

    Returns:
        Dict with 'warnings' list of potential issues found
    """
    warnings = []
    by_subject_level = {(d.subject, d.level): d for d in definitions.values()}

    for record in records:
        label = f"[{record.school_name} {record.class_name} {record.subject} {record.level}]"
        definition = by_subject_level.get((record.subject, record.level))
        if definition is None:
            warnings.append(f"  {label} No taxonomy for this subject/level")
            continue

        known = {(c.id, k.id) for c in definition.competencies for k in c.criteria}
        for student in record.students:
            for comp_id, criteria in student.results.items():
                for crit_id in criteria:
                    try:
                        pair = (comp_id, int(crit_id))
                    except (TypeError, ValueError):
                        pair = (comp_id, crit_id)
                    if pair not in known:
                        warnings.append(
                            f"  {label} '{student.full_name}' has a grade for unknown criterion "
                            f"{comp_id}/{crit_id}"
                        )

        # Duplicate names break cross-subject matching
        seen = set()
        for student in record.students:
            key = student.full_name.strip()
            if key in seen:
                warnings.append(f"  {label} Duplicate student name: '{key}'")
            seen.add(key)

    return {'warnings': warnings}


# CLI entry point
if __name__ == "__main__":
    from taxonomy import SUBJECT_DEFINITIONS

    print("=" * 60)
    print("Competency Grade Loader")
    print("=" * 60)

    print("\nLoading grade CSVs...")
    records = load_all_grade_csvs()

    print("\nValidating records...")
    validation = validate_records(records, SUBJECT_DEFINITIONS)
    if validation['warnings']:
        print(f"  Found {len(validation['warnings'])} potential issues:")
        for warning in validation['warnings']:
            print(warning)
    else:
        print("  All records validated successfully!")

    save_records(records)

    print("\n" + "=" * 60)
    print("Data Summary")
    print("=" * 60)
    print(f"  Records: {len(records)}")
    print(f"  Schools: {sorted({r.school_name for r in records})}")
    print(f"  Subjects: {sorted({r.subject for r in records})}")
    print(f"  Students: {sum(len(r.students) for r in records)}")

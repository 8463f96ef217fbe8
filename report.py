"""
Competency Report Builder

Runs every indicator of an analysis profile over a scope and packages the
numbers and their narratives into one JSON-serializable dict for the
dashboard.

This is the main entry point for computing indicators.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import RECORDS_PATH, REPORT_PATH
from load_data import ClassRecord, load_records, validate_records
from taxonomy import AnalysisProfile, ANALYSIS_PROFILES, SUBJECT_DEFINITIONS, get_profile, links_for
from scoring import (
    mastery_percentage, distribute, distribution_shares, homogeneity, homogeneity_band,
    level_counts, summarize_percentages,
)
from analysis import (
    select_records, population, analyze_students, diagnose_student, quadrant_counts,
    quadrant_shares, didactic_gap, radar_profile, weakest_domain, funnel, funnel_drop_rate,
    link, mean_gap,
    criterion_success, rank_groups, efficiency_index, efficiency_zone, priority_criteria,
    structured_indicators, critical_failure_rate, struggling_students,
)
from narrative import OverrideKey, OverrideStore, narrate, narrate_all


def default_context_name(scope: str, school_name: Optional[str], class_name: Optional[str]) -> str:
    """Name of the scope; a class is named with its school so equal class names stay distinct."""
    if scope == 'class':
        return f"{school_name} - {class_name}"
    if scope == 'school':
        return school_name
    return 'district'


def build_cross_subject(all_records: List[ClassRecord], profile: AnalysisProfile, scope: str,
                        school_name: Optional[str], class_name: Optional[str]) -> List[Dict[str, Any]]:
    """Link this profile's students with every subject it is paired with."""
    results = []
    for cross in links_for(profile.key):
        x_def = get_profile(cross.x_profile).definition
        y_def = get_profile(cross.y_profile).definition
        records_x = select_records(all_records, scope, school_name, class_name,
                                   subject=x_def.subject, level=x_def.level)
        records_y = select_records(all_records, scope, school_name, class_name,
                                   subject=y_def.subject, level=y_def.level)
        pairs = link(records_x, cross.x_criteria, records_y, cross.y_criteria)
        results.append({
            'key': cross.key,
            'label': cross.label,
            'x_label': x_def.label,
            'y_label': y_def.label,
            'pairs': len(pairs),
            'mean_gap': mean_gap(pairs),
            'points': [asdict(p) for p in pairs],
            # Whole-subject mastery on each side, for the subject balance reading
            'balance': {
                'x_label': x_def.label,
                'x_pct': mastery_percentage(population(records_x), x_def.criteria()),
                'y_label': y_def.label,
                'y_pct': mastery_percentage(population(records_y), y_def.criteria()),
            },
        })
    return results


def build_subject_report(all_records: List[ClassRecord],
                         profile: AnalysisProfile,
                         scope: str = 'district',
                         school_name: Optional[str] = None,
                         class_name: Optional[str] = None,
                         context_name: Optional[str] = None,
                         store: Optional[OverrideStore] = None) -> Optional[Dict[str, Any]]:
    """
    Build the complete indicator report for one subject profile.

    Args:
        all_records: Every loaded class record (other subjects are needed
            for cross-subject links)
        profile: Analysis profile of the subject/level to report on
        scope: 'district', 'school' or 'class'
        school_name: Required for school and class scope
        class_name: Required for class scope
        context_name: Name shown to the user; part of the override key
        store: Optional store of manually edited narratives

    Returns:
        Report dict, or None when the scope holds no record of this subject
    """
    definition = profile.definition
    records = select_records(all_records, scope, school_name, class_name,
                             subject=definition.subject, level=definition.level)
    if not records:
        return None

    if context_name is None:
        context_name = default_context_name(scope, school_name, class_name)
    students = population(records)
    criteria = profile.all_criteria

    student_rows = analyze_students(records, profile)
    percentages = [s.percentage for s in student_rows]

    distribution = distribute(students, criteria)
    homogeneity_index = homogeneity(percentages)
    matrix = quadrant_counts((s.x_pct, s.y_pct) for s in student_rows)
    gap = didactic_gap(students, profile.x_axis.criteria, profile.y_axis.criteria)
    radar = radar_profile(students, profile.radar_domains)
    weakest = weakest_domain(radar)
    stages = funnel(students, profile.funnel_gates)
    efficiency = efficiency_index(students, criteria)
    critical_rate = critical_failure_rate(students, profile.critical_criteria)

    bundle = {
        'distribution': distribution,
        'homogeneity': {'index': homogeneity_index},
        'matrix': {'counts': matrix, 'x_label': profile.x_axis.label, 'y_label': profile.y_axis.label},
        'gap': dict(gap, x_label=profile.x_axis.label, y_label=profile.y_axis.label),
        'radar': {'domains': [asdict(p) for p in radar]},
        'funnel': {'population': len(students), 'stages': [asdict(s) for s in stages]},
        'critical_failure': {'rate': critical_rate},
        'efficiency': {'index': efficiency, 'zone': efficiency_zone(efficiency)},
    }
    key = OverrideKey(subject=profile.key, scope=scope, context_name=context_name)
    narratives = narrate_all(bundle, store, key)

    cross_subject = build_cross_subject(all_records, profile, scope, school_name, class_name)
    for cross in cross_subject:
        for kind, indicators in (('cross_subject', cross), ('subject_balance', cross['balance'])):
            section = f"{kind}:{cross['key']}"
            override = store.get(key, section) if store is not None else None
            narratives[section] = narrate(kind, indicators, override)

    ranking = rank_groups(records, scope, profile)

    return {
        'profile': profile.key,
        'subject_label': definition.label,
        'scope': scope,
        'context_name': context_name,
        'school_name': school_name,
        'class_name': class_name,
        'total_students': len(students),
        'mastery': mastery_percentage(students, criteria),
        'statistics': summarize_percentages(percentages),
        'levels': level_counts(percentages),
        'distribution': distribution,
        'distribution_shares': distribution_shares(distribution),
        'homogeneity': {'index': homogeneity_index, 'band': homogeneity_band(homogeneity_index)},
        'matrix': {
            'x_label': profile.x_axis.label,
            'y_label': profile.y_axis.label,
            'counts': matrix,
            'shares': quadrant_shares(matrix),
            'labels': dict(profile.quadrant_labels),
        },
        'gap': gap,
        'radar': bundle['radar']['domains'],
        'weakest_domain': asdict(weakest) if weakest else None,
        'funnel': {
            'stages': bundle['funnel']['stages'],
            'drop_rate': funnel_drop_rate(len(students), stages),
        },
        'critical_failure_rate': critical_rate,
        'efficiency': {
            'index': efficiency,
            'zone': efficiency_zone(efficiency),
            'priority_criteria': priority_criteria(students, definition),
        },
        'structured': structured_indicators(distribution),
        'criteria': criterion_success(students, definition),
        'ranking': ranking.to_dict('records'),
        'struggling': (
            struggling_students(records, definition, profile.struggling_competency)
            if profile.struggling_competency else []
        ),
        'students': [
            dict(asdict(s), diagnosis=diagnose_student(s.x_pct, s.y_pct))
            for s in student_rows
        ],
        'cross_subject': cross_subject,
        'narratives': {section: asdict(n) for section, n in narratives.items()},
    }


def build_district_report(records: List[ClassRecord],
                          store: Optional[OverrideStore] = None) -> Dict[str, Any]:
    """
    Build district-scope reports for every configured subject present.

    Returns:
        Dictionary with schools, subjects and one report per profile
    """
    reports = []
    for profile in ANALYSIS_PROFILES.values():
        report = build_subject_report(records, profile, 'district', store=store)
        if report:
            reports.append(report)
            print(f"  {profile.key}: {report['total_students']} students, "
                  f"mastery={report['mastery']:.1f}%, "
                  f"homogeneity={report['homogeneity']['index']:.1f} ({report['homogeneity']['band']})")

    return {
        'schools': sorted({r.school_name for r in records}),
        'subjects': sorted({(r.subject, r.level) for r in records}),
        'reports': reports,
    }


def save_report(data: Dict[str, Any], output_path: str = REPORT_PATH) -> None:
    """Save the computed report to JSON for dashboard consumption."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    print(f"\nReport saved to {output_path}")


# CLI entry point
if __name__ == "__main__":
    print("=" * 60)
    print("Competency Report Builder")
    print("=" * 60)

    records = load_records(RECORDS_PATH)
    print(f"Loaded {len(records)} class records from {RECORDS_PATH}")

    validation = validate_records(records, SUBJECT_DEFINITIONS)
    for warning in validation['warnings']:
        print(warning)

    print("\nBuilding reports...")
    data = build_district_report(records)
    save_report(data)

    print("\n" + "=" * 60)
    print("Report Summary")
    print("=" * 60)
    print(f"  Schools: {len(data['schools'])}")
    print(f"  Subject reports: {len(data['reports'])}")
    for report in data['reports']:
        print(f"  {report['subject_label']}: median {report['statistics']['median']:.1f}%, "
              f"efficiency zone {report['efficiency']['zone']}")

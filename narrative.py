"""
Indicator Narratives

Turns computed indicators into three template sentences per section
(reading, diagnosis, recommendation) by threshold dispatch. Deterministic:
the same indicators always give the same text.

An inspector may replace the text of any section. Overrides live in an
OverrideStore keyed by OverrideKey(subject, scope, context_name) plus the
section name; they replace the text only, never the numbers.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from config import (
    HOMOGENEITY_BANDS, GAP_THRESHOLDS, MATRIX_IMBALANCE_SHARE, CRITICAL_FAILURE_ALERT,
    CROSS_SUBJECT_TIGHT_GAP, SUBJECT_BALANCE_GAP, SUBJECT_EXCELLENCE, SUBJECT_STRUGGLE,
)


@dataclass(frozen=True)
class OverrideKey:
    subject: str
    scope: str
    context_name: str


@dataclass
class Narrative:
    reading: str
    diagnosis: str
    recommendation: str


class OverrideStore:
    """Key-value store of manually edited narratives."""

    def get(self, key: OverrideKey, section: str) -> Optional[Narrative]:
        raise NotImplementedError

    def save(self, key: OverrideKey, section: str, narrative: Narrative) -> None:
        raise NotImplementedError

    def reset(self, key: OverrideKey, section: str) -> None:
        raise NotImplementedError


class InMemoryOverrideStore(OverrideStore):

    def __init__(self, data: Optional[Dict[Tuple[OverrideKey, str], Narrative]] = None):
        self._data = data if data is not None else {}

    def get(self, key, section):
        return self._data.get((key, section))

    def save(self, key, section, narrative):
        self._data[(key, section)] = narrative

    def reset(self, key, section):
        self._data.pop((key, section), None)

    def __len__(self):
        return len(self._data)


# ==================== SECTION TEMPLATES ====================

def _pct(part: float, whole: float) -> int:
    return round(part / whole * 100) if whole else 0


def _distribution(ind: Dict) -> Narrative:
    total = ind['total']
    a, b, cd = ind['A'], ind['B'], ind['C'] + ind['D']
    positive = a + b > cd
    return Narrative(
        reading=f"Full mastery: {_pct(a, total)}% | Acceptable mastery: {_pct(b, total)}% | "
                f"Not acquired: {_pct(cd, total)}%",
        diagnosis="Most assessed criteria are acquired; the group is ready for next year's content."
        if positive else
        "C and D grades outnumber A and B; gaps in the basics will carry into next year.",
        recommendation="Consolidate with complex integration tasks."
        if positive else
        "Run a class remediation project on the missing fundamentals.",
    )


def _homogeneity(ind: Dict) -> Narrative:
    index = ind['index']
    if index < HOMOGENEITY_BANDS['homogeneous']:
        diagnosis = "Highly homogeneous group; whole-class instruction is viable."
    elif index <= HOMOGENEITY_BANDS['fragmented']:
        diagnosis = "Normal spread between students, manageable with varied activities."
    else:
        diagnosis = "Fragmented group split between strong and struggling students."
    return Narrative(
        reading=f"Homogeneity index (standard deviation): {index:.2f}",
        diagnosis=diagnosis,
        recommendation="Use flexible grouping (remediation group / enrichment group)."
        if index > HOMOGENEITY_BANDS['fragmented'] else
        "Keep differentiating within whole-class teaching.",
    )


def _matrix(ind: Dict) -> Narrative:
    counts = ind['counts']
    x_label, y_label = ind['x_label'], ind['y_label']
    total = counts['total']
    x_only = _pct(counts['high_low'], total)
    y_only = _pct(counts['low_high'], total)
    reading = f"{x_label} without {y_label}: {x_only}% | {y_label} without {x_label}: {y_only}%"

    if x_only > MATRIX_IMBALANCE_SHARE and x_only >= y_only:
        return Narrative(
            reading=reading,
            diagnosis=f"Many students hold the {x_label.lower()} but cannot put them to use in {y_label.lower()}.",
            recommendation=f"Build {y_label.lower()} tasks directly on the resources already taught.",
        )
    if y_only > MATRIX_IMBALANCE_SHARE:
        return Narrative(
            reading=reading,
            diagnosis=f"Many students succeed in {y_label.lower()} despite weak {x_label.lower()}.",
            recommendation=f"Strengthen {x_label.lower()} through short daily drills.",
        )
    return Narrative(
        reading=reading,
        diagnosis=f"{x_label} and {y_label} progress together.",
        recommendation="Maintain the current balance between resources and their application.",
    )


def _gap(ind: Dict) -> Narrative:
    gap = ind['gap']
    x_label, y_label = ind['x_label'], ind['y_label']
    if gap > GAP_THRESHOLDS['wide']:
        diagnosis = f"Wide gap: {x_label.lower()} is taught as an end in itself rather than a means."
    elif gap > GAP_THRESHOLDS['moderate']:
        diagnosis = f"Moderate gap in favour of {x_label.lower()}."
    elif gap < -GAP_THRESHOLDS['wide']:
        diagnosis = f"Wide gap in favour of {y_label.lower()}; the underlying resources are fragile."
    else:
        diagnosis = "Acceptable balance between theory and application."
    return Narrative(
        reading=f"{x_label}: {ind['x_pct']:.1f}% | {y_label}: {ind['y_pct']:.1f}% | gap {gap:+.1f} points",
        diagnosis=diagnosis,
        recommendation=f"End every {x_label.lower()} lesson with a short {y_label.lower()} task."
        if gap > GAP_THRESHOLDS['moderate'] else
        "Continue integrating resources and application in the same lessons.",
    )


def _funnel(ind: Dict) -> Narrative:
    stages = ind['stages']
    start = ind['population']
    if not stages:
        return Narrative(reading="No skill gates configured.", diagnosis="", recommendation="")

    end = stages[-1]['count']
    drop = _pct(start - end, start)
    breaks = [s for s in stages[1:] if s['retention'] is not None]
    reading = f"Of {start} students, {end} reach '{stages[-1]['label']}'. Overall drop: {drop}%."
    if not breaks:
        return Narrative(
            reading=reading,
            diagnosis=f"{stages[0]['count']} students clear '{stages[0]['label']}'.",
            recommendation="Add further gates to locate where students stall.",
        )

    worst = min(breaks, key=lambda s: s['retention'])
    return Narrative(
        reading=reading,
        diagnosis=f"The sharpest break is at '{worst['label']}' "
                  f"({worst['retention']:.0f}% of the previous stage).",
        recommendation=f"Concentrate remediation time on '{worst['label']}'.",
    )


def _radar(ind: Dict) -> Narrative:
    domains = ind['domains']
    if not domains:
        return Narrative(reading="No domains configured.", diagnosis="", recommendation="")
    weakest = min(domains, key=lambda d: d['percentage'])
    return Narrative(
        reading=f"Mastery across {len(domains)} domains ranges from "
                f"{min(d['percentage'] for d in domains):.1f}% to {max(d['percentage'] for d in domains):.1f}%.",
        diagnosis=f"The weakest domain is \"{weakest['label']}\" at {weakest['percentage']:.1f}%.",
        recommendation=f"Devote the next integration weeks to \"{weakest['label']}\".",
    )


def _critical_failure(ind: Dict) -> Narrative:
    rate = ind['rate']
    if rate == 0:
        return Narrative(
            reading="0% of students fail every basic criterion.",
            diagnosis="The basic tools of learning are acquired by the whole group.",
            recommendation="Shift the focus to higher-order skills.",
        )
    critical = rate > CRITICAL_FAILURE_ALERT
    return Narrative(
        reading=f"{rate:.1f}% of students fail every basic criterion.",
        diagnosis="Educational emergency: these students lack the tools to learn on their own."
        if critical else
        "Within acceptable limits; these are individual cases.",
        recommendation="Start the support and remediation programme immediately, basics first."
        if critical else
        "Follow individual cases during regular remediation sessions.",
    )


def _cross_subject(ind: Dict) -> Narrative:
    if ind['pairs'] == 0:
        return Narrative(reading="No students matched across the two subjects.", diagnosis="", recommendation="")
    gap = ind['mean_gap']
    return Narrative(
        reading=f"Mean gap between {ind['x_label']} and {ind['y_label']}: {gap:.1f} points "
                f"over {ind['pairs']} students.",
        diagnosis="Closely linked: progress in one subject carries into the other."
        if gap < CROSS_SUBJECT_TIGHT_GAP else
        f"Possible language barrier: weak {ind['x_label'].lower()} may explain failure in "
        f"{ind['y_label'].lower()}.",
        recommendation="Keep coordinating both subjects."
        if gap < CROSS_SUBJECT_TIGHT_GAP else
        f"Practise reading {ind['y_label'].lower()} material during language lessons.",
    )


def _subject_balance(ind: Dict) -> Narrative:
    x_label, y_label = ind['x_label'], ind['y_label']
    x_pct, y_pct = ind['x_pct'], ind['y_pct']
    gap = x_pct - y_pct
    if gap > SUBJECT_BALANCE_GAP:
        diagnosis = f"Lean towards {x_label}; {y_label} concepts are under-built."
    elif gap < -SUBJECT_BALANCE_GAP:
        diagnosis = f"Lean towards {y_label}; {x_label} is neglected."
    elif x_pct > SUBJECT_EXCELLENCE and y_pct > SUBJECT_EXCELLENCE:
        diagnosis = "Outstanding and balanced teaching across both subjects."
    elif x_pct < SUBJECT_STRUGGLE and y_pct < SUBJECT_STRUGGLE:
        diagnosis = "General difficulty across both subjects."
    else:
        diagnosis = "Balanced profile."
    return Narrative(
        reading=f"{x_label}: {x_pct:.1f}% | {y_label}: {y_pct:.1f}%",
        diagnosis=diagnosis,
        recommendation="Rebalance weekly time towards the weaker subject."
        if abs(gap) > SUBJECT_BALANCE_GAP else
        "Review class management and planning."
        if x_pct < SUBJECT_STRUGGLE and y_pct < SUBJECT_STRUGGLE else
        "Maintain current practice.",
    )


def _efficiency(ind: Dict) -> Narrative:
    index, zone = ind['index'], ind['zone']
    diagnoses = {
        1: "High efficiency; remaining obstacles relate to equal opportunity.",
        2: "Medium efficiency; obstacles relate to subject didactics or practice.",
        3: "Low efficiency; teacher, learner and content all need review.",
    }
    return Narrative(
        reading=f"Efficiency index (A+B share): {index:.1f}% (zone {zone})",
        diagnosis=diagnoses[zone],
        recommendation="Target the priority criteria in the remediation plan."
        if zone > 1 else
        "Extend enrichment to the remaining students.",
    )


SECTIONS: Dict[str, Callable[[Dict], Narrative]] = {
    'distribution': _distribution,
    'homogeneity': _homogeneity,
    'matrix': _matrix,
    'gap': _gap,
    'funnel': _funnel,
    'radar': _radar,
    'critical_failure': _critical_failure,
    'cross_subject': _cross_subject,
    'subject_balance': _subject_balance,
    'efficiency': _efficiency,
}


def narrate(section: str, indicators: Dict, override: Optional[Narrative] = None) -> Narrative:
    """
    Render one section's narrative from its indicators.

    When an override is supplied it is returned as-is.
    """
    if override is not None:
        return override
    if section not in SECTIONS:
        raise ValueError(f"Unknown narrative section '{section}'")
    return SECTIONS[section](indicators)


def narrate_all(bundle: Dict[str, Dict],
                store: Optional[OverrideStore] = None,
                key: Optional[OverrideKey] = None) -> Dict[str, Narrative]:
    """Narrate every section of an indicator bundle, applying stored overrides."""
    narratives = {}
    for section, indicators in bundle.items():
        override = store.get(key, section) if store is not None and key is not None else None
        narratives[section] = narrate(section, indicators, override)
    return narratives

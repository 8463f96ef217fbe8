"""
Competency Taxonomy and Analysis Profiles

Static, read-only description of what is assessed for each (subject, level)
pair, and declarative profiles naming which criteria feed each indicator:

- SubjectDefinition: ordered competencies, each with ordered criteria
- AnalysisProfile: the two quadrant axes, radar domains, funnel gates,
  critical criteria and struggling-student competency for one subject
- CrossSubjectLink: a pairing of two subjects' criteria for per-student
  correlation

Every criterion referenced by a profile is checked against its definition
when the profile is built, so a typo in this file fails at import time
instead of silently scoring zero.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# A criterion set is an ordered tuple of (competency_id, criterion_id) pairs
CriterionPair = Tuple[str, int]
CriterionSet = Tuple[CriterionPair, ...]


class TaxonomyError(ValueError):
    """A competency or criterion is referenced but absent from the taxonomy."""


@dataclass(frozen=True)
class CriterionDefinition:
    id: int
    label: str


@dataclass(frozen=True)
class CompetencyDefinition:
    id: str
    label: str
    criteria: Tuple[CriterionDefinition, ...]


@dataclass(frozen=True)
class SubjectDefinition:
    """Competency/criterion taxonomy for one subject at one year level."""
    id: str
    label: str
    subject: str        # subject code as stored on ClassRecord.subject
    level: str          # level code as stored on ClassRecord.level
    competencies: Tuple[CompetencyDefinition, ...]

    def competency(self, competency_id: str) -> CompetencyDefinition:
        for competency in self.competencies:
            if competency.id == competency_id:
                return competency
        raise TaxonomyError(f"{self.id}: unknown competency '{competency_id}'")

    def criterion(self, competency_id: str, criterion_id: int) -> CriterionDefinition:
        for criterion in self.competency(competency_id).criteria:
            if criterion.id == criterion_id:
                return criterion
        raise TaxonomyError(
            f"{self.id}: competency '{competency_id}' has no criterion {criterion_id}"
        )

    def criteria(self, *competency_ids: str) -> CriterionSet:
        """
        All (competency, criterion) pairs in canonical order.

        When competency ids are given, only those competencies are included,
        in the order the taxonomy declares them.
        """
        for competency_id in competency_ids:
            self.competency(competency_id)
        return tuple(
            (competency.id, criterion.id)
            for competency in self.competencies
            if not competency_ids or competency.id in competency_ids
            for criterion in competency.criteria
        )

    def select(self, *pairs: CriterionPair) -> CriterionSet:
        """Validate an explicit list of pairs against the taxonomy."""
        for competency_id, criterion_id in pairs:
            self.criterion(competency_id, criterion_id)
        return tuple(pairs)

    def label_for(self, competency_id: str, criterion_id: int) -> str:
        return self.criterion(competency_id, criterion_id).label


def _subject(id, label, subject, level, competencies) -> SubjectDefinition:
    return SubjectDefinition(
        id=id,
        label=label,
        subject=subject,
        level=level,
        competencies=tuple(
            CompetencyDefinition(
                id=comp_id,
                label=comp_label,
                criteria=tuple(
                    CriterionDefinition(id=i, label=crit_label)
                    for i, crit_label in enumerate(criteria, start=1)
                )
            )
            for comp_id, comp_label, criteria in competencies
        )
    )


# =============================================================================
# SUBJECT DEFINITIONS
# =============================================================================

YEAR2_ARABIC = _subject('arabic_y2', 'اللغة العربية (السنة الثانية)', 'arabic', '2AP', [
    ('reading_performance', 'كفاءة الأداء القرائي', [
        'الالتزام بالعادات القرائية الحسنة',
        'فك ترميز الكلمات (التهجئة السليمة)',
        'قراءة وحدات لغوية كاملة (الاسترسال والنطق السليم)',
    ]),
    ('written_comprehension', 'كفاءة فهم المكتوب', [
        'فهم المعاني الصريحة في النص',
        'فهم تسلسل فكر أو الأحداث الواردة في النص',
        'فهم معاني الكلمات الواردة في النص (رصيد لغوي)',
        'التحكم في تطبيقات مهارات الوعي الصوتي',
        'الرسم الإملائي لجمل (الإملاء)',
    ]),
])

YEAR2_MATH = _subject('math_y2', 'الرياضيات (السنة الثانية)', 'math', '2AP', [
    ('control_numbers', 'التحكم في نظام العد والحساب', [
        'التحكم في موارد نظام العد العشري (قراءة، كتابة، مقارنة، تفكيك)',
        'التحكم في عمليتي الجمع والطرح (آلية الحساب)',
    ]),
    ('problem_solving', 'منهجية حل المشكلات الرياضياتية', [
        'فهم المشكلة الرياضياتية (تحديد المعطيات والمطلوب)',
        'انسجام عناصر الحل (اختيار العملية المناسبة)',
        'الاستعمال السليم للأدوات الرياضياتية (الإنجاز الصحيح)',
        'التبليغ الرياضياتي (الصياغة والوحدات)',
    ]),
])

YEAR4_ARABIC = _subject('arabic_y4', 'اللغة العربية (السنة الرابعة)', 'arabic', '4AP', [
    ('oral_comms', 'فهم الخطاب والتواصل الشفوي', [
        'الالتزام بآداب الاستماع والتحدث',
        'إدراك موضوع الخطاب وفكرته الأساسية',
        'التجاوب مع التعليمات',
        'الاسترسال وسلامة لغة التواصل',
        'توظيف الدلالات اللفظية وغير اللفظية',
    ]),
    ('reading_perf', 'كفاءة الأداء القرائي', [
        'العادات القرائية الحسنة',
        'قراءة مسترسلة لوحدات لغوية كاملة',
        'قراءة معبرة عن المعاني',
        'احترام زمن الإنجاز (مدة القراءة)',
    ]),
    ('written_comp', 'كفاءة فهم المكتوب', [
        'توظيف الحصيلة اللغوية',
        'التحليل النحوي لجملة',
        'التحويل الصرفي لفقرة',
        'تشكيل فقرة أو تصحيحها',
        'الرسم الإملائي لفقرة',
    ]),
    ('written_prod', 'كفاءة الإنتاج الكتابي', [
        'احترام التعليمة والمهمات المرفقة',
        'ترابط الأفكار وتسلسلها',
        'الالتزام بقواعد اللغة',
        'إدراج قيمة أو تحديد موقف أو إبداء رأي',
        'جودة المنتج',
    ]),
])

YEAR4_MATH = _subject('math_y4', 'الرياضيات (السنة الرابعة)', 'math', '4AP', [
    ('control_resources', 'التحكم في موارد مختلف الميادين', [
        'الأعداد (< 1,000,000)، الأعداد العشرية، الكسور والحساب',
        'الفضاء والهندسة (وحدات القياس، الأشكال، المساحة والمحيط)',
        'تنظيم المعطيات والتناسبية (الخواص الخطية)',
    ]),
    ('methodological_solving', 'الكفاءة المنهجية لحل المشكلات', [
        'فهم المشكلة (تحديد المعطيات والمطلوب)',
        'انسجام عناصر الحل (اختيار الخوارزمية المناسبة)',
        'الاستعمال السليم للأدوات (صحة الحساب والنتائج)',
        'التبليغ الرياضياتي (الوحدات، التنظيم، الجواب)',
    ]),
])

YEAR5_HISTORY = _subject('history_y5', 'التاريخ (السنة الخامسة)', 'history', '5AP', [
    ('general_history', 'فهم التحولات في التاريخ العام', [
        'تمييز العصور التاريخية',
        'إدراك العلاقة بين التحولات الاقتصادية والحركة الاستعمارية',
        'إبراز انعكاسات الاستعمار الأوروبي الحديث',
    ]),
    ('national_history', 'تأصيل التاريخ الوطني', [
        'إدراك أسباب الاحتلال الفرنسي للجزائر',
        'استيعاب الإطار الزماني والمكاني للمقاومة وطبيعتها',
        'فهم اتجاهات النضال السياسي وأساليبه',
        'استيعاب المراحل الكبرى للثورة التحريرية',
    ]),
])

# Only the reading competency of Year 5 Arabic is declared; history is linked against it
YEAR5_ARABIC = _subject('arabic_y5', 'اللغة العربية (السنة الخامسة)', 'arabic', '5AP', [
    ('reading_perf', 'كفاءة الأداء القرائي', [
        'العادات القرائية الحسنة',
        'قراءة مسترسلة لوحدات لغوية كاملة',
        'قراءة معبرة عن المعاني',
        'احترام زمن الإنجاز (مدة القراءة)',
    ]),
])

SUBJECT_DEFINITIONS: Dict[str, SubjectDefinition] = {
    d.id: d for d in (YEAR2_ARABIC, YEAR2_MATH, YEAR4_ARABIC, YEAR4_MATH, YEAR5_ARABIC, YEAR5_HISTORY)
}


# =============================================================================
# ANALYSIS PROFILES
# =============================================================================

@dataclass(frozen=True)
class Axis:
    label: str
    criteria: CriterionSet


@dataclass(frozen=True)
class RadarDomain:
    label: str
    criteria: CriterionSet


@dataclass(frozen=True)
class FunnelGate:
    """A student clears the gate with a passing grade on any (or all) criteria."""
    label: str
    criteria: CriterionSet
    mode: str = "any"   # "any" | "all"


@dataclass(frozen=True)
class AnalysisProfile:
    key: str
    definition: SubjectDefinition
    x_axis: Axis
    y_axis: Axis
    # high_high / high_low / low_high / low_low -> subject-specific meaning
    quadrant_labels: Dict[str, str] = field(default_factory=dict)
    radar_domains: Tuple[RadarDomain, ...] = ()
    funnel_gates: Tuple[FunnelGate, ...] = ()
    critical_criteria: CriterionSet = ()
    struggling_competency: Optional[str] = None

    def __post_init__(self):
        sets = [self.x_axis.criteria, self.y_axis.criteria, self.critical_criteria]
        sets += [d.criteria for d in self.radar_domains]
        sets += [g.criteria for g in self.funnel_gates]
        for criteria in sets:
            self.definition.select(*criteria)
        for gate in self.funnel_gates:
            if gate.mode not in ("any", "all"):
                raise TaxonomyError(f"{self.key}: gate '{gate.label}' has unknown mode '{gate.mode}'")
        if self.struggling_competency is not None:
            self.definition.competency(self.struggling_competency)

    @property
    def all_criteria(self) -> CriterionSet:
        return self.definition.criteria()


def _gate(definition: SubjectDefinition, label: str, *pairs: CriterionPair, mode: str = "any") -> FunnelGate:
    return FunnelGate(label=label, criteria=definition.select(*pairs), mode=mode)


ANALYSIS_PROFILES: Dict[str, AnalysisProfile] = {}


def register_profile(profile: AnalysisProfile) -> AnalysisProfile:
    ANALYSIS_PROFILES[profile.key] = profile
    return profile


register_profile(AnalysisProfile(
    key='arabic_y2',
    definition=YEAR2_ARABIC,
    x_axis=Axis('Oral reading', YEAR2_ARABIC.criteria('reading_performance')),
    y_axis=Axis('Written comprehension', YEAR2_ARABIC.criteria('written_comprehension')),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'rote_reading',
        'low_high': 'decoding_issue',
        'low_low': 'struggling',
    },
    radar_domains=tuple(
        RadarDomain(c.label, YEAR2_ARABIC.criteria(c.id)) for c in YEAR2_ARABIC.competencies
    ),
    funnel_gates=(
        _gate(YEAR2_ARABIC, 'Decoding', ('reading_performance', 2)),
        _gate(YEAR2_ARABIC, 'Fluent reading', ('reading_performance', 3)),
        _gate(YEAR2_ARABIC, 'Comprehension', ('written_comprehension', 1), ('written_comprehension', 2)),
        _gate(YEAR2_ARABIC, 'Dictation', ('written_comprehension', 5)),
    ),
    critical_criteria=YEAR2_ARABIC.select(('reading_performance', 2), ('written_comprehension', 5)),
    struggling_competency='written_comprehension',
))

register_profile(AnalysisProfile(
    key='math_y2',
    definition=YEAR2_MATH,
    x_axis=Axis('Calculation', YEAR2_MATH.criteria('control_numbers')),
    y_axis=Axis('Problem solving', YEAR2_MATH.criteria('problem_solving')),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'rote_learning',
        'low_high': 'procedural_issue',
        'low_low': 'struggling',
    },
    radar_domains=tuple(
        RadarDomain(c.label, YEAR2_MATH.criteria(c.id)) for c in YEAR2_MATH.competencies
    ),
    funnel_gates=(
        _gate(YEAR2_MATH, 'Number sense', ('control_numbers', 1)),
        _gate(YEAR2_MATH, 'Calculation', ('control_numbers', 2)),
        _gate(YEAR2_MATH, 'Understanding the problem', ('problem_solving', 1)),
        _gate(YEAR2_MATH, 'Coherent solution', ('problem_solving', 2), ('problem_solving', 3), mode='all'),
    ),
    critical_criteria=YEAR2_MATH.select(('control_numbers', 1), ('problem_solving', 1)),
    struggling_competency='problem_solving',
))

register_profile(AnalysisProfile(
    key='arabic_y4',
    definition=YEAR4_ARABIC,
    x_axis=Axis('Oral and reading', YEAR4_ARABIC.criteria('oral_comms', 'reading_perf')),
    y_axis=Axis('Written', YEAR4_ARABIC.criteria('written_comp', 'written_prod')),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'oral_only',
        'low_high': 'written_only',
        'low_low': 'struggling',
    },
    radar_domains=tuple(
        RadarDomain(c.label, YEAR4_ARABIC.criteria(c.id)) for c in YEAR4_ARABIC.competencies
    ),
    funnel_gates=(
        _gate(YEAR4_ARABIC, 'Fluent readers', ('reading_perf', 2)),
        _gate(YEAR4_ARABIC, 'Comprehension', ('written_comp', 1), ('oral_comms', 2)),
        _gate(YEAR4_ARABIC, 'Text production', ('written_prod', 2)),
        _gate(YEAR4_ARABIC, 'Opinion and creativity', ('written_prod', 4)),
    ),
    critical_criteria=YEAR4_ARABIC.select(('reading_perf', 2), ('written_comp', 5)),
    struggling_competency='written_prod',
))

register_profile(AnalysisProfile(
    key='math_y4',
    definition=YEAR4_MATH,
    x_axis=Axis('Resources', YEAR4_MATH.criteria('control_resources')),
    y_axis=Axis('Methodology', YEAR4_MATH.criteria('methodological_solving')),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'method_gap',
        'low_high': 'knowledge_gap',
        'low_low': 'struggling',
    },
    radar_domains=(
        RadarDomain('Numbers', YEAR4_MATH.select(('control_resources', 1))),
        RadarDomain('Geometry', YEAR4_MATH.select(('control_resources', 2))),
        RadarDomain('Proportionality', YEAR4_MATH.select(('control_resources', 3))),
        RadarDomain('Problem solving', YEAR4_MATH.criteria('methodological_solving')),
    ),
    funnel_gates=(
        _gate(YEAR4_MATH, 'Numbers', ('control_resources', 1)),
        _gate(YEAR4_MATH, 'Understanding the problem', ('methodological_solving', 1)),
        _gate(YEAR4_MATH, 'Choosing the algorithm', ('methodological_solving', 2)),
        _gate(YEAR4_MATH, 'Communicating the answer', ('methodological_solving', 4)),
    ),
    critical_criteria=YEAR4_MATH.select(('control_resources', 1), ('methodological_solving', 1)),
    struggling_competency='methodological_solving',
))

register_profile(AnalysisProfile(
    key='arabic_y5',
    definition=YEAR5_ARABIC,
    x_axis=Axis('Reading mechanics', YEAR5_ARABIC.select(('reading_perf', 1), ('reading_perf', 2))),
    y_axis=Axis('Expressive reading', YEAR5_ARABIC.select(('reading_perf', 3), ('reading_perf', 4))),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'mechanical_reading',
        'low_high': 'decoding_issue',
        'low_low': 'struggling',
    },
    radar_domains=(
        RadarDomain('Reading habits', YEAR5_ARABIC.select(('reading_perf', 1))),
        RadarDomain('Fluency', YEAR5_ARABIC.select(('reading_perf', 2))),
        RadarDomain('Expression', YEAR5_ARABIC.select(('reading_perf', 3))),
        RadarDomain('Reading time', YEAR5_ARABIC.select(('reading_perf', 4))),
    ),
    funnel_gates=(
        _gate(YEAR5_ARABIC, 'Reading habits', ('reading_perf', 1)),
        _gate(YEAR5_ARABIC, 'Fluent readers', ('reading_perf', 2)),
        _gate(YEAR5_ARABIC, 'Expressive readers', ('reading_perf', 3), ('reading_perf', 4), mode='all'),
    ),
    critical_criteria=YEAR5_ARABIC.select(('reading_perf', 1)),
    struggling_competency='reading_perf',
))

register_profile(AnalysisProfile(
    key='history_y5',
    definition=YEAR5_HISTORY,
    x_axis=Axis('General history', YEAR5_HISTORY.criteria('general_history')),
    y_axis=Axis('National history', YEAR5_HISTORY.criteria('national_history')),
    quadrant_labels={
        'high_high': 'balanced_high',
        'high_low': 'weak_identity',
        'low_high': 'weak_chronology',
        'low_low': 'struggling',
    },
    radar_domains=tuple(
        RadarDomain(c.label, YEAR5_HISTORY.criteria(c.id)) for c in YEAR5_HISTORY.competencies
    ),
    funnel_gates=(
        _gate(YEAR5_HISTORY, 'Historical periods', ('general_history', 1)),
        _gate(YEAR5_HISTORY, 'Causes of occupation', ('national_history', 1)),
        _gate(YEAR5_HISTORY, 'Resistance and revolution', ('national_history', 2), ('national_history', 4), mode='all'),
    ),
    critical_criteria=YEAR5_HISTORY.select(('general_history', 1), ('national_history', 1)),
    struggling_competency='national_history',
))


def get_profile(key: str) -> AnalysisProfile:
    if key not in ANALYSIS_PROFILES:
        raise TaxonomyError(f"No analysis profile named '{key}'")
    return ANALYSIS_PROFILES[key]


def find_profile(subject: str, level: str) -> Optional[AnalysisProfile]:
    """Profile for a ClassRecord's (subject, level), or None if unconfigured."""
    for profile in ANALYSIS_PROFILES.values():
        if profile.definition.subject == subject and profile.definition.level == level:
            return profile
    return None


# =============================================================================
# CROSS-SUBJECT LINKS
# =============================================================================

@dataclass(frozen=True)
class CrossSubjectLink:
    key: str
    label: str
    x_profile: str
    x_criteria: CriterionSet
    y_profile: str
    y_criteria: CriterionSet

    def __post_init__(self):
        get_profile(self.x_profile).definition.select(*self.x_criteria)
        get_profile(self.y_profile).definition.select(*self.y_criteria)


CROSS_SUBJECT_LINKS: Dict[str, CrossSubjectLink] = {
    link.key: link for link in [
        # Math is assessed through written Arabic; weak reading can masquerade as weak math
        CrossSubjectLink(
            key='y4_reading_vs_math',
            label='Arabic reading vs math problem solving',
            x_profile='arabic_y4',
            x_criteria=YEAR4_ARABIC.criteria('reading_perf'),
            y_profile='math_y4',
            y_criteria=YEAR4_MATH.criteria('methodological_solving'),
        ),
        CrossSubjectLink(
            key='y2_reading_vs_math',
            label='Arabic reading vs math problem solving',
            x_profile='arabic_y2',
            x_criteria=YEAR2_ARABIC.criteria('reading_performance'),
            y_profile='math_y2',
            y_criteria=YEAR2_MATH.criteria('problem_solving'),
        ),
        # History is read and written in Arabic; reading level bounds history results
        CrossSubjectLink(
            key='y5_history_vs_arabic_reading',
            label='Arabic reading vs history',
            x_profile='arabic_y5',
            x_criteria=YEAR5_ARABIC.criteria('reading_perf'),
            y_profile='history_y5',
            y_criteria=YEAR5_HISTORY.criteria(),
        ),
    ]
}


def links_for(profile_key: str) -> List[CrossSubjectLink]:
    return [
        link for link in CROSS_SUBJECT_LINKS.values()
        if profile_key in (link.x_profile, link.y_profile)
    ]

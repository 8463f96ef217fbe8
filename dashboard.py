"""
Competency Analytics Dashboard

Interactive Streamlit dashboard over letter-grade competency records.
Summary metrics are MEDIAN-FIRST; averages are shown as secondary reference.

Views:
- Subject Analysis: every indicator of one subject at district, school or
  class scope, with editable narratives
- Student Profile: one student's mastery across subjects vs the class median
- Data Quality: taxonomy validation warnings for the loaded records
"""

import streamlit as st
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd
import numpy as np
from pathlib import Path

from config import RECORDS_PATH, QUADRANT_THRESHOLD
from load_data import load_records, load_all_grade_csvs, save_records, validate_records
from taxonomy import ANALYSIS_PROFILES, SUBJECT_DEFINITIONS, find_profile
from scoring import mastery_level, student_percentage, student_percentages
from analysis import select_records, subject_scores
from narrative import InMemoryOverrideStore, Narrative, OverrideKey
from report import build_subject_report

# Page configuration
st.set_page_config(
    page_title="Competency Analytics Dashboard",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .narrative-card {
        background-color: #f8f9fa;
        border-left: 4px solid #1976d2;
        border-radius: 6px;
        padding: 10px 14px;
        margin: 5px 0;
    }
    .narrative-card .label {
        color: #6c757d;
        font-size: 0.85em;
        font-weight: 500;
    }
</style>
""", unsafe_allow_html=True)

GRADE_COLORS = {'A': '#28a745', 'B': '#8bc34a', 'C': '#ffc107', 'D': '#dc3545'}
LEVEL_COLORS = {'controlled': '#28a745', 'partial': '#ffc107', 'limited': '#dc3545'}

SECTION_TITLES = {
    'distribution': "Grade Distribution",
    'homogeneity': "Homogeneity",
    'matrix': "Quadrant Matrix",
    'gap': "Didactic Gap",
    'funnel': "Skill Funnel",
    'radar': "Domain Profile",
    'critical_failure': "Critical Failure",
    'efficiency': "Efficiency",
    'cross_subject': "Cross-Subject Link",
    'subject_balance': "Subject Balance",
}


# ==================== DATA LOADING ====================

@st.cache_data
def load_data():
    """Load class records from the record store (with caching for performance)."""
    if not Path(RECORDS_PATH).exists():
        # Auto-generate from the grade CSVs if missing
        records = load_all_grade_csvs()
        save_records(records)
        return records
    return load_records(RECORDS_PATH)


def get_override_store() -> InMemoryOverrideStore:
    """Narrative overrides survive reruns for the lifetime of the browser session."""
    if "override_store" not in st.session_state:
        st.session_state.override_store = InMemoryOverrideStore()
    return st.session_state.override_store


# ==================== HELPER FUNCTIONS ====================

def get_performance_color(value: float) -> str:
    """Return color based on the configured mastery level thresholds."""
    return LEVEL_COLORS[mastery_level(value)]


def section_title(section: str) -> str:
    kind, _, link_key = section.partition(':')
    title = SECTION_TITLES.get(kind, kind)
    return f"{title} ({link_key})" if link_key else title


def get_student_subjects(records: list, school_name: str, class_name: str, student_name: str) -> list:
    """Mastery of one student in every configured subject of their class."""
    student_data = []
    for record in select_records(records, 'class', school_name, class_name):
        profile = find_profile(record.subject, record.level)
        if profile is None:
            continue
        criteria = profile.all_criteria
        class_percentages = student_percentages(record.students, criteria)
        for student in record.students:
            if student.full_name.strip() == student_name:
                student_data.append({
                    'subject': profile.definition.label,
                    'profile': profile,
                    'student': student,
                    'percentage': student_percentage(student, criteria),
                    'class_median': float(np.median(class_percentages)),
                    'class_average': float(np.mean(class_percentages)),
                })
    return student_data


# ==================== CHART FUNCTIONS ====================

def create_distribution_chart(distribution: dict) -> go.Figure:
    """Bar chart of raw A/B/C/D counts."""
    grades = ['A', 'B', 'C', 'D']
    counts = [distribution[g] for g in grades]
    total = distribution['total']

    fig = go.Figure(go.Bar(
        x=grades,
        y=counts,
        marker_color=[GRADE_COLORS[g] for g in grades],
        text=[f"{c} ({c / total * 100:.0f}%)" if total else "0" for c in counts],
        textposition='outside'
    ))

    fig.update_layout(
        title=f"Grade Distribution ({total} graded criteria)",
        xaxis_title="Grade",
        yaxis_title="Count",
        height=380
    )

    return fig


def create_quadrant_chart(report: dict) -> go.Figure:
    """Scatter of students on the two profile axes with the quadrant threshold."""
    matrix = report['matrix']
    df = pd.DataFrame(report['students'])
    if df.empty:
        df = pd.DataFrame(columns=['x_pct', 'y_pct', 'quadrant', 'full_name', 'class_name'])
    df['Quadrant'] = df['quadrant'].map(matrix['labels'])

    fig = px.scatter(
        df,
        x='x_pct',
        y='y_pct',
        color='Quadrant',
        hover_name='full_name',
        hover_data={'class_name': True, 'x_pct': ':.1f', 'y_pct': ':.1f'},
        labels={'x_pct': f"{matrix['x_label']} (%)", 'y_pct': f"{matrix['y_label']} (%)"},
    )
    fig.add_vline(x=QUADRANT_THRESHOLD, line_dash="dash", line_color="#6c757d")
    fig.add_hline(y=QUADRANT_THRESHOLD, line_dash="dash", line_color="#6c757d")

    fig.update_layout(
        title=f"{matrix['x_label']} vs {matrix['y_label']}",
        xaxis=dict(range=[-5, 105]),
        yaxis=dict(range=[-5, 105]),
        height=450
    )

    return fig


def create_radar_chart(domains: list, title: str = "Mastery by Domain") -> go.Figure:
    """Radar chart of mastery per domain."""
    labels = [d['label'] for d in domains]
    values = [d['percentage'] for d in domains]

    fig = go.Figure()

    fig.add_trace(go.Scatterpolar(
        r=values + values[:1],
        theta=labels + labels[:1],
        fill='toself',
        name='Mastery',
        line_color='#1976d2',
        fillcolor='rgba(25, 118, 210, 0.3)'
    ))

    fig.update_layout(
        polar=dict(radialaxis=dict(visible=True, range=[0, 100])),
        showlegend=False,
        title=title,
        height=450
    )

    return fig


def create_funnel_chart(stages: list) -> go.Figure:
    """Funnel of students clearing each skill gate."""
    fig = go.Figure(go.Funnel(
        y=[s['label'] for s in stages],
        x=[s['count'] for s in stages],
        text=[
            f"{s['count']} ({s['retention']:.0f}% of previous)" if s['retention'] is not None
            else f"{s['count']}"
            for s in stages
        ],
        textinfo='text',
        marker=dict(color='#1976d2')
    ))

    fig.update_layout(title="Skill Funnel", height=400)

    return fig


def create_criterion_chart(criteria: list, title: str = "Success Rate by Criterion") -> go.Figure:
    """Horizontal bar chart of (A+B) success rate per criterion."""
    labels = [c['label'] for c in criteria]
    rates = [c['success_rate'] for c in criteria]
    colors = [get_performance_color(r) for r in rates]

    fig = go.Figure(go.Bar(
        x=rates,
        y=labels,
        orientation='h',
        marker_color=colors,
        text=[f"{r:.1f}%" for r in rates],
        textposition='outside'
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Success rate (%)",
        yaxis_title="",
        xaxis=dict(range=[0, 105]),
        height=max(300, len(criteria) * 40),
        margin=dict(l=300)
    )

    return fig


def create_spider_chart(student_data: list, student_name: str) -> go.Figure:
    """Radar chart comparing student vs class MEDIAN and average across subjects."""
    subjects = [d['subject'] for d in student_data]
    student_scores = [d['percentage'] for d in student_data]
    class_medians = [d['class_median'] for d in student_data]
    class_averages = [d['class_average'] for d in student_data]

    fig = go.Figure()

    fig.add_trace(go.Scatterpolar(
        r=student_scores + [student_scores[0]],
        theta=subjects + [subjects[0]],
        fill='toself',
        name=student_name,
        line_color='#1976d2',
        fillcolor='rgba(25, 118, 210, 0.3)'
    ))

    fig.add_trace(go.Scatterpolar(
        r=class_medians + [class_medians[0]],
        theta=subjects + [subjects[0]],
        fill='toself',
        name='Class Median',
        line_color='#388e3c',
        line_width=3,
        fillcolor='rgba(56, 142, 60, 0.2)'
    ))

    fig.add_trace(go.Scatterpolar(
        r=class_averages + [class_averages[0]],
        theta=subjects + [subjects[0]],
        name='Class Average',
        line_color='#ff9800',
        line_dash='dash',
        line_width=2
    ))

    fig.update_layout(
        polar=dict(radialaxis=dict(visible=True, range=[0, 100])),
        showlegend=True,
        title=f"Subject Comparison: {student_name}",
        height=450
    )

    return fig


def create_cross_subject_chart(cross: dict) -> go.Figure:
    """Scatter of linked students: one subject per axis, diagonal for equal mastery."""
    points = cross['points']
    fig = go.Figure(go.Scatter(
        x=[p['x_pct'] for p in points],
        y=[p['y_pct'] for p in points],
        mode='markers',
        text=[p['full_name'] for p in points],
        hovertemplate='%{text}: %{x:.1f}% / %{y:.1f}%<extra></extra>',
        marker=dict(color='#1976d2', size=9)
    ))
    fig.add_shape(type='line', x0=0, y0=0, x1=100, y1=100, line=dict(color='#6c757d', dash='dot'))

    fig.update_layout(
        title=cross['label'],
        xaxis_title=f"{cross['x_label']} (%)",
        yaxis_title=f"{cross['y_label']} (%)",
        xaxis=dict(range=[-5, 105]),
        yaxis=dict(range=[-5, 105]),
        height=420
    )

    return fig


# ==================== NARRATIVES ====================

def render_narrative(section: str, narrative: dict, key: OverrideKey, store: InMemoryOverrideStore):
    """Show one narrative with an inline editor; saving stores an override."""
    st.markdown(
        f"<div class='narrative-card'>"
        f"<b>{section_title(section)}</b>{' (edited)' if store.get(key, section) else ''}<br>"
        f"<span class='label'>Reading</span><br>{narrative['reading']}<br>"
        f"<span class='label'>Diagnosis</span><br>{narrative['diagnosis']}<br>"
        f"<span class='label'>Recommendation</span><br>{narrative['recommendation']}"
        f"</div>",
        unsafe_allow_html=True
    )

    widget_key = f"{key.subject}|{key.scope}|{key.context_name}|{section}"
    with st.expander("Edit text"):
        reading = st.text_area("Reading", narrative['reading'], key=f"{widget_key}|reading")
        diagnosis = st.text_area("Diagnosis", narrative['diagnosis'], key=f"{widget_key}|diagnosis")
        recommendation = st.text_area("Recommendation", narrative['recommendation'],
                                      key=f"{widget_key}|recommendation")

        col1, col2 = st.columns(2)
        with col1:
            if st.button("Save", key=f"{widget_key}|save", type="primary"):
                store.save(key, section, Narrative(reading, diagnosis, recommendation))
                st.rerun()
        with col2:
            if store.get(key, section) is not None and st.button("Reset to computed text",
                                                                 key=f"{widget_key}|reset"):
                store.reset(key, section)
                st.rerun()


# ==================== MAIN DASHBOARD ====================

def main():
    records = load_data()
    store = get_override_store()

    st.title("Competency Analytics Dashboard")
    st.info("**Median-First Analysis**: Summary statistics use the median of per-student mastery. "
            "Averages are shown as secondary reference.")

    # Sidebar navigation
    st.sidebar.title("Navigation")
    tab_selection = st.sidebar.radio(
        "Select View:",
        ["Subject Analysis", "Student Profile", "Data Quality"]
    )
    st.sidebar.markdown("---")

    if not records:
        st.warning("The record store is empty. Load grade CSVs with `python load_data.py`.")
        return

    schools = sorted({r.school_name for r in records})

    # ==================== TAB 1: SUBJECT ANALYSIS ====================
    if tab_selection == "Subject Analysis":
        available = [
            key for key, p in ANALYSIS_PROFILES.items()
            if any(r.subject == p.definition.subject and r.level == p.definition.level for r in records)
        ]
        if not available:
            st.warning("No records match a configured subject.")
            return

        profile_key = st.sidebar.selectbox(
            "Subject", available, format_func=lambda k: ANALYSIS_PROFILES[k].definition.label
        )
        profile = ANALYSIS_PROFILES[profile_key]
        scope = st.sidebar.radio("Scope", ["district", "school", "class"], format_func=str.title)

        school_name = class_name = None
        if scope in ("school", "class"):
            school_name = st.sidebar.selectbox("School", schools)
        if scope == "class":
            classes = sorted({
                r.class_name for r in select_records(records, 'school', school_name,
                                                     subject=profile.definition.subject,
                                                     level=profile.definition.level)
            })
            if not classes:
                st.warning("This school has no class for the selected subject.")
                return
            class_name = st.sidebar.selectbox("Class", classes)

        report = build_subject_report(records, profile, scope, school_name, class_name, store=store)
        if report is None:
            st.warning("No data available for this selection.")
            return

        key = OverrideKey(subject=profile.key, scope=scope, context_name=report['context_name'])
        narratives = report['narratives']

        st.header(f"{report['subject_label']} - {report['context_name']}")

        stats = report['statistics']
        col1, col2, col3, col4, col5 = st.columns(5)
        with col1:
            st.metric("Median Mastery", f"{stats['median']:.1f}%")
            st.caption(f"Average: {stats['average']:.1f}%")
        with col2:
            st.metric("Students", report['total_students'])
        with col3:
            st.metric("Homogeneity", f"{report['homogeneity']['index']:.1f}")
            st.caption(report['homogeneity']['band'].title())
        with col4:
            st.metric("Efficiency", f"{report['efficiency']['index']:.1f}%")
            st.caption(f"Zone {report['efficiency']['zone']}")
        with col5:
            st.metric("Critical Failure", f"{report['critical_failure_rate']:.1f}%")

        levels = report['levels']
        st.caption(f"Controlled: {levels['controlled']} | Partial: {levels['partial']} | "
                   f"Limited: {levels['limited']}")

        st.divider()

        col1, col2 = st.columns(2)
        with col1:
            st.subheader("Grade Distribution")
            st.plotly_chart(create_distribution_chart(report['distribution']), use_container_width=True)
            render_narrative('distribution', narratives['distribution'], key, store)
        with col2:
            render_narrative('homogeneity', narratives['homogeneity'], key, store)
            render_narrative('efficiency', narratives['efficiency'], key, store)

        st.subheader("Quadrant Matrix")
        col1, col2 = st.columns([2, 1])
        with col1:
            st.plotly_chart(create_quadrant_chart(report), use_container_width=True)
        with col2:
            matrix = report['matrix']
            st.dataframe(pd.DataFrame([
                {'Quadrant': matrix['labels'].get(q, q), 'Students': matrix['counts'][q],
                 'Share': f"{matrix['shares'][q]:.1f}%"}
                for q in ('high_high', 'high_low', 'low_high', 'low_low')
            ]), use_container_width=True, hide_index=True)
            render_narrative('matrix', narratives['matrix'], key, store)
            render_narrative('gap', narratives['gap'], key, store)

        col1, col2 = st.columns(2)
        with col1:
            st.subheader("Domain Profile")
            if report['radar']:
                st.plotly_chart(create_radar_chart(report['radar']), use_container_width=True)
            render_narrative('radar', narratives['radar'], key, store)
        with col2:
            st.subheader("Skill Funnel")
            if report['funnel']['stages']:
                st.plotly_chart(create_funnel_chart(report['funnel']['stages']), use_container_width=True)
            st.caption(f"Drop before the last gate: {report['funnel']['drop_rate']:.1f}%")
            render_narrative('funnel', narratives['funnel'], key, store)

        render_narrative('critical_failure', narratives['critical_failure'], key, store)

        st.subheader("Criterion Heatmap")
        st.plotly_chart(create_criterion_chart(report['criteria']), use_container_width=True)

        col1, col2 = st.columns(2)
        with col1:
            st.markdown("**Priority Criteria (most C/D grades)**")
            for c in report['efficiency']['priority_criteria']:
                st.markdown(f"- {c['label']}: {c['fail_count']} students ({c['fail_rate']:.1f}%)")
            if not report['efficiency']['priority_criteria']:
                st.caption("None")
        with col2:
            st.markdown("**Struggling Students**")
            if report['struggling']:
                st.dataframe(pd.DataFrame(report['struggling']).rename(columns={
                    'full_name': 'Student', 'school_name': 'School', 'class_name': 'Class',
                    'percentage': 'Mastery %', 'worst_criterion': 'First D criterion',
                }), use_container_width=True, hide_index=True)
            else:
                st.success("No struggling students.")

        st.subheader("School Ranking" if scope == 'district' else "Class Ranking")
        ranking_df = pd.DataFrame(report['ranking'])
        st.dataframe(ranking_df.round(1), use_container_width=True, hide_index=True)

        if report['cross_subject']:
            st.subheader("Cross-Subject Analysis")
            for cross in report['cross_subject']:
                section = f"cross_subject:{cross['key']}"
                col1, col2 = st.columns([2, 1])
                with col1:
                    st.plotly_chart(create_cross_subject_chart(cross), use_container_width=True)
                with col2:
                    st.metric("Linked students", cross['pairs'])
                    st.metric("Mean gap", f"{cross['mean_gap']:.1f}")
                    render_narrative(section, narratives[section], key, store)
                    balance_section = f"subject_balance:{cross['key']}"
                    render_narrative(balance_section, narratives[balance_section], key, store)

        st.subheader("Student Diagnosis")
        students_df = pd.DataFrame(report['students'])
        if not students_df.empty:
            students_df = students_df.sort_values('percentage', ascending=False)
            students_df['quadrant'] = students_df['quadrant'].map(report['matrix']['labels'])
            st.dataframe(students_df.rename(columns={
                'full_name': 'Student', 'school_name': 'School', 'class_name': 'Class',
                'percentage': 'Mastery %', 'x_pct': report['matrix']['x_label'],
                'y_pct': report['matrix']['y_label'], 'quadrant': 'Quadrant',
                'level': 'Level', 'diagnosis': 'Diagnosis',
            }).round(1), use_container_width=True, hide_index=True)

        if len(store):
            st.sidebar.caption(f"{len(store)} narrative(s) edited this session")

    # ==================== TAB 2: STUDENT PROFILE ====================
    elif tab_selection == "Student Profile":
        st.header("Student Profile")

        col1, col2, col3 = st.columns(3)
        with col1:
            school_name = st.selectbox("Select School", schools)
        with col2:
            classes = sorted({r.class_name for r in select_records(records, 'school', school_name)})
            class_name = st.selectbox("Select Class", classes)
        with col3:
            students = sorted({
                s.full_name.strip()
                for r in select_records(records, 'class', school_name, class_name)
                for s in r.students
            })
            selected_student = st.selectbox("Select Student", students)

        class_scores = subject_scores(select_records(records, 'class', school_name, class_name))
        if class_scores:
            st.caption("Class mastery by subject: " + " | ".join(
                f"{subject}: {pct:.1f}%" for subject, pct in sorted(class_scores.items())
            ))

        if selected_student:
            student_data = get_student_subjects(records, school_name, class_name, selected_student)

            if student_data:
                st.subheader(selected_student)

                cols = st.columns(len(student_data))
                for i, subj_data in enumerate(student_data):
                    with cols[i]:
                        vs_median = subj_data['percentage'] - subj_data['class_median']
                        st.metric(
                            label=subj_data['subject'],
                            value=f"{subj_data['percentage']:.1f}%",
                            delta=f"{vs_median:+.1f}% vs Median"
                        )
                        st.caption(f"Class Median: {subj_data['class_median']:.1f}%")

                st.divider()

                if len(student_data) > 2:
                    st.plotly_chart(create_spider_chart(student_data, selected_student),
                                    use_container_width=True)

                st.subheader("Subject Details")
                for subj_data in student_data:
                    profile = subj_data['profile']
                    student = subj_data['student']
                    with st.expander(f"{subj_data['subject']} - {subj_data['percentage']:.1f}%"):
                        x_pct = student_percentage(student, profile.x_axis.criteria)
                        y_pct = student_percentage(student, profile.y_axis.criteria)
                        st.markdown(f"""
                        - **{profile.x_axis.label}**: {x_pct:.1f}%
                        - **{profile.y_axis.label}**: {y_pct:.1f}%
                        - **vs Median**: {subj_data['percentage'] - subj_data['class_median']:+.1f}%
                        - **vs Average**: {subj_data['percentage'] - subj_data['class_average']:+.1f}%
                        """)
                        domains = [
                            {'label': d.label, 'percentage': student_percentage(student, d.criteria)}
                            for d in profile.radar_domains
                        ]
                        if len(domains) > 2:
                            st.plotly_chart(create_radar_chart(domains, ""), use_container_width=True)
            else:
                st.warning("No data available for this student.")

    # ==================== TAB 3: DATA QUALITY ====================
    elif tab_selection == "Data Quality":
        st.header("Data Quality")

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Class Records", len(records))
        with col2:
            st.metric("Schools", len(schools))
        with col3:
            st.metric("Students", sum(len(r.students) for r in records))

        validation = validate_records(records, SUBJECT_DEFINITIONS)
        if validation['warnings']:
            st.warning(f"Found {len(validation['warnings'])} potential issues")
            st.dataframe(pd.DataFrame({'Issue': [w.strip() for w in validation['warnings']]}),
                         use_container_width=True, hide_index=True)
        else:
            st.success("All records validated successfully!")


if __name__ == "__main__":
    main()

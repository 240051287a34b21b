import streamlit as st

from src.tutor.application.service import LearningService
from src.tutor.presentation.viewmodel import QuizViewModel


def render(service: LearningService, vm: QuizViewModel) -> None:
    st.title("📊 Dashboard")
    summary = service.get_dashboard(vm.learner)

    col1, col2, col3 = st.columns(3)
    col1.metric("Quizzes", summary.total_quizzes)
    col2.metric("Accuracy", f"{summary.average_accuracy:.0f}%")
    col3.metric("Streak", f"🔥 {summary.streak}")

    st.subheader("Weak concepts")
    if not summary.weak_concepts:
        st.info("No weak concepts yet. Take a quiz to find out what to practice.")
    else:
        selected: list[str] = []
        for weak in summary.weak_concepts:
            label = (
                f"{weak.concept.name} ({weak.incorrect_count} wrong "
                f"of {weak.total_questions})"
            )
            if st.checkbox(label, key=f"weak_{weak.concept_id}"):
                selected.append(weak.concept_id)

        col_a, col_b = st.columns(2)
        if col_a.button("🔁 Retest selected", disabled=not selected, type="primary"):
            with st.spinner("Writing fresh questions..."):
                vm.start_retest(selected)
            st.session_state.screen = "quiz"
            st.rerun()
        if col_b.button("🧑‍🏫 Learn selected", disabled=len(selected) != 1):
            st.session_state.learn_concept_id = selected[0]
            st.session_state.screen = "learn"
            st.rerun()

    st.subheader("Recent quizzes")
    for recent in summary.recent_sessions:
        session = recent.session
        name = recent.document.file_name if recent.document else "Deleted document"
        status = (
            f"{session.correct_answers}/{session.total_questions}"
            if session.is_completed
            else "in progress"
        )
        kind = "Retest" if session.is_retest else "Quiz"
        st.write(f"{kind} · {name} · {status} · {session.created_at:%Y-%m-%d}")

import streamlit as st

from src.config import AppConfig
from src.fsm import QuizState
from src.tutor.presentation.viewmodel import QuizViewModel
from src.tutor.presentation.views.components import option_label, render_progress


def render(vm: QuizViewModel) -> None:
    """
    Main entry point for the Quiz Screen.
    Routes on the quiz FSM state.
    """
    state = vm.current_state

    if state == QuizState.IDLE:
        st.title("📝 Quiz")
        st.info("Pick a document on the Documents screen, or retest weak concepts "
                "from the Dashboard.")

    elif state == QuizState.LOADING:
        with st.spinner("Loading questions..."):
            pass

    elif state == QuizState.QUESTION_ACTIVE:
        _render_active(vm)

    elif state == QuizState.FEEDBACK_VIEW:
        _render_feedback(vm)

    elif state == QuizState.SUMMARY:
        _render_summary(vm)

    elif state == QuizState.EMPTY_STATE:
        st.warning("This document has no questions yet.")
        _back_button(vm)

    elif state == QuizState.ERROR:
        st.error(vm.error_message or "Something went wrong while loading the quiz.")
        _back_button(vm)


def _back_button(vm: QuizViewModel) -> None:
    if st.button("Back"):
        vm.reset()
        st.rerun()


def _render_active(vm: QuizViewModel) -> None:
    item = vm.current_question
    if item is None:
        return

    skipped = vm.state.get("skipped_concepts") or []
    if skipped:
        st.info(f"Could not write new questions for {len(skipped)} concept(s); "
                "they were left out of this retest.")

    render_progress(vm.progress.current_q_index + 1, len(vm.questions), item.concept.name)
    st.markdown(
        f'<div class="question-text">{item.question.text}</div>',
        unsafe_allow_html=True,
    )

    for index, text in enumerate(item.question.options):
        if st.button(option_label(index, text), key=f"opt_{item.id}_{index}",
                     use_container_width=True):
            with st.spinner("Checking..."):
                vm.submit_answer(index)
            st.rerun()


def _render_feedback(vm: QuizViewModel) -> None:
    item = vm.current_question
    answer = vm.last_answer
    if item is None or answer is None:
        return

    render_progress(vm.progress.current_q_index + 1, len(vm.questions), item.concept.name)
    st.markdown(f"**{item.question.text}**")

    for index, text in enumerate(item.question.options):
        label = option_label(index, text)
        if index == item.question.correct_index:
            st.success(f"✅ {label}")
        elif index == answer.chosen_index:
            st.error(f"❌ {label}")
        else:
            st.write(label)

    if answer.is_correct:
        st.balloons()
    elif answer.explanation:
        with st.expander("🧑‍🏫 Tutor", expanded=True):
            st.info(answer.explanation)

    label = "🏁 Finish" if vm.is_last_question else "Next ➡️"
    if st.button(label, type="primary", use_container_width=True):
        vm.next_step()
        st.rerun()


def _render_summary(vm: QuizViewModel) -> None:
    st.title("🏁 Summary")
    score = vm.progress.score
    total = len(vm.questions)
    ratio = score / total if total else 0.0

    col1, col2 = st.columns(2)
    col1.metric("Score", f"{score} / {total}")
    col2.metric("Accuracy", f"{int(ratio * 100)}%")

    if ratio >= AppConfig.PASSING_RATIO:
        st.success("Great work! 🏆")
    else:
        st.warning("Keep going! Weak concepts will come up first next time.")

    report = vm.report()
    if report:
        for entry in report.entries:
            icon = "✅" if entry.answer.is_correct else "❌"
            with st.expander(f"{icon} {entry.question.text}"):
                st.caption(entry.concept.name)
                st.write(f"Your answer: {entry.question.options[entry.answer.chosen_index]}")
                st.write(f"Correct answer: {entry.question.correct_option}")
                if entry.answer.explanation:
                    st.info(entry.answer.explanation)

    if st.button("🔄 Back to documents", use_container_width=True):
        vm.reset()
        st.session_state.screen = "upload"
        st.rerun()

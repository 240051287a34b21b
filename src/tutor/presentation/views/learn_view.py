import streamlit as st

from src.tutor.application.service import LearningService
from src.tutor.domain.errors import TutorError


def render(service: LearningService) -> None:
    st.title("🧑‍🏫 Learn")

    concept_id = st.session_state.get("learn_concept_id")
    if not concept_id:
        st.info("Choose a weak concept on the Dashboard to start a lesson.")
        return

    try:
        concept = service.get_concept(concept_id)
    except TutorError as e:
        st.error(str(e))
        return

    st.subheader(concept.name)
    st.caption(concept.description)

    lesson_key = f"lesson_{concept_id}"
    if lesson_key not in st.session_state:
        with st.spinner("Preparing your lesson..."):
            st.session_state[lesson_key] = service.teach_concept(concept_id)
    st.markdown(st.session_state[lesson_key])

    st.markdown("---")
    history_key = f"qa_{concept_id}"
    history: list[tuple[str, str]] = st.session_state.setdefault(history_key, [])
    for asked, answered in history:
        with st.chat_message("user"):
            st.write(asked)
        with st.chat_message("assistant"):
            st.write(answered)

    question = st.chat_input("Ask a follow-up question")
    if question:
        with st.spinner("Thinking..."):
            answer = service.ask_concept_question(concept_id, question)
        history.append((question, answer))
        st.rerun()

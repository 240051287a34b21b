import streamlit as st

from src.config import AppConfig
from src.tutor.application.service import LearningService
from src.tutor.domain.errors import TutorError
from src.tutor.presentation.viewmodel import QuizViewModel


def render(service: LearningService, vm: QuizViewModel) -> None:
    st.title("📄 Your Documents")
    learner = vm.learner

    uploaded = st.file_uploader(
        "Upload study material", type=list(AppConfig.SUPPORTED_EXTENSIONS)
    )
    if uploaded is not None and st.button("✨ Extract concepts", type="primary"):
        with st.spinner("Reading the document and writing questions..."):
            try:
                result = service.upload_document(
                    learner, uploaded.name, uploaded.getvalue()
                )
            except TutorError as e:
                st.error(str(e))
            else:
                st.success(
                    f"Found {result.concepts_count} concepts and "
                    f"{result.questions_count} questions in {result.file_name}."
                )

    st.markdown("---")
    documents = service.list_documents(learner)
    if not documents:
        st.info("No documents yet. Upload a PDF or DOCX to get started.")
        return

    for document in documents:
        col1, col2 = st.columns([3, 1])
        col1.markdown(
            f"**{document.file_name}**  \n"
            f"<span class='concept-tag'>{document.uploaded_at:%Y-%m-%d %H:%M}</span>",
            unsafe_allow_html=True,
        )
        if col2.button("🚀 Quiz", key=f"quiz_{document.id}"):
            vm.start_quiz(document.id)
            st.session_state.screen = "quiz"
            st.rerun()

import pytest
import streamlit as st

from src.tutor.adapters.db_manager import DatabaseManager
from src.tutor.adapters.sqlite_repository import SQLiteLearningRepository
from src.tutor.domain.models import (
    Concept,
    Document,
    Learner,
    Question,
    QuestionWithConcept,
)


class MockSessionState(dict):
    """
    Mock for st.session_state that behaves like both a dict and an object.
    Allows both dict-style and attribute-style access.
    """

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as err:
            raise AttributeError(
                f"'MockSessionState' object has no attribute '{name}'"
            ) from err

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        try:
            del self[name]
        except KeyError as err:
            raise AttributeError(
                f"'MockSessionState' object has no attribute '{name}'"
            ) from err


@pytest.fixture(autouse=True)
def mock_streamlit_session():
    """
    Auto-use fixture that ensures st.session_state exists for all tests.
    """
    original_session_state = getattr(st, "session_state", None)
    st.session_state = MockSessionState()

    yield st.session_state

    st.session_state.clear()
    if original_session_state is not None:
        st.session_state = original_session_state


def make_question(concept_id: str, q_id: str | None = None, correct: int = 0) -> Question:
    kwargs = {"id": q_id} if q_id else {}
    return Question(
        concept_id=concept_id,
        text=f"Question {q_id or ''} about {concept_id}",
        options=["Option A", "Option B", "Option C", "Option D"],
        correct_index=correct,
        **kwargs,
    )


@pytest.fixture
def question_factory():
    return make_question


@pytest.fixture
def pool_factory():
    """Builds QuestionWithConcept items: pool_factory({"A": 2, "B": 1})."""

    def build(counts: dict[str, int], document_id: str = "DOC") -> list[QuestionWithConcept]:
        pool = []
        for concept_id, count in counts.items():
            concept = Concept(
                id=concept_id,
                document_id=document_id,
                name=f"Concept {concept_id}",
                description=f"About {concept_id}",
            )
            for i in range(count):
                pool.append(
                    QuestionWithConcept(
                        question=make_question(concept_id, f"{concept_id}{i}"),
                        concept=concept,
                    )
                )
        return pool

    return build


@pytest.fixture
def guest():
    return Learner.guest("guest-1")


@pytest.fixture
def user():
    return Learner.authenticated("alice")


@pytest.fixture
def sample_document(user):
    return Document(
        id="DOC1",
        user_id=user.user_id,
        file_name="notes.pdf",
        file_size=1234,
        extracted_text="Photosynthesis converts light into chemical energy. " * 10,
    )


@pytest.fixture
def sample_concept(sample_document):
    return Concept(
        id="C1",
        document_id=sample_document.id,
        name="Photosynthesis",
        description="Light to chemical energy",
    )


@pytest.fixture
def in_memory_repo():
    """Returns a clean, empty in-memory repository."""
    db_manager = DatabaseManager(db_path=":memory:")
    repo = SQLiteLearningRepository(db_manager=db_manager)
    yield repo
    db_manager.close()


@pytest.fixture
def populated_repo(in_memory_repo, sample_document, sample_concept):
    """A repo holding one document, one concept and two of its questions."""
    in_memory_repo.save_document(sample_document)
    in_memory_repo.save_concept(sample_concept)
    in_memory_repo.save_questions(
        [make_question(sample_concept.id, "Q1"), make_question(sample_concept.id, "Q2", 1)]
    )
    return in_memory_repo

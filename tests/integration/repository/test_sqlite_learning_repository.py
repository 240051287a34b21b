import pickle
from datetime import datetime

import pytest

from src.tutor.adapters.db_manager import DatabaseManager
from src.tutor.adapters.sqlite_repository import SQLiteLearningRepository
from src.tutor.domain.models import (
    AnswerRecord,
    Concept,
    Document,
    Learner,
    QuizSession,
)


def _session(learner: Learner, session_id: str, **kwargs) -> QuizSession:
    return QuizSession(
        id=session_id,
        document_id="DOC1",
        user_id=learner.user_id,
        guest_session_id=learner.guest_session_id,
        total_questions=kwargs.pop("total_questions", 2),
        **kwargs,
    )


def _answer(session_id: str, question_id: str, concept_id: str, correct: bool):
    return AnswerRecord(
        quiz_session_id=session_id,
        question_id=question_id,
        concept_id=concept_id,
        chosen_index=0 if correct else 1,
        is_correct=correct,
    )


class TestDocumentsAndConcepts:
    def test_document_round_trip(self, in_memory_repo, sample_document, user, guest):
        in_memory_repo.save_document(sample_document)

        assert in_memory_repo.get_document("DOC1") == sample_document
        assert in_memory_repo.list_documents(user) == [sample_document]
        assert in_memory_repo.list_documents(guest) == []

    def test_missing_rows_are_none(self, in_memory_repo):
        assert in_memory_repo.get_document("x") is None
        assert in_memory_repo.get_concept("x") is None
        assert in_memory_repo.get_question("x") is None
        assert in_memory_repo.get_quiz_session("x") is None

    def test_concepts_by_ids_skips_unknown(self, populated_repo, sample_concept):
        found = populated_repo.get_concepts_by_ids(["C1", "nope"])

        assert found == {"C1": sample_concept}
        assert populated_repo.get_concepts_by_ids([]) == {}


class TestQuestions:
    def test_questions_with_concepts_for_document(self, populated_repo):
        items = populated_repo.get_questions_with_concepts("DOC1")

        assert [i.id for i in items] == ["Q1", "Q2"]
        assert all(i.concept.name == "Photosynthesis" for i in items)
        assert items[1].question.options == [
            "Option A",
            "Option B",
            "Option C",
            "Option D",
        ]
        assert items[1].question.correct_index == 1

    def test_questions_by_ids_keeps_requested_order(self, populated_repo):
        items = populated_repo.get_questions_by_ids(["Q2", "missing", "Q1"])

        assert [i.id for i in items] == ["Q2", "Q1"]

    def test_questions_of_other_documents_are_excluded(self, populated_repo):
        assert populated_repo.get_questions_with_concepts("OTHER") == []


class TestSessionsAndAnswers:
    def test_session_round_trip_with_fixed_questions(self, populated_repo, user):
        session = _session(user, "S1", question_ids=["Q2", "Q1"])
        populated_repo.save_quiz_session(session)

        loaded = populated_repo.get_quiz_session("S1")

        assert loaded.question_ids == ["Q2", "Q1"]
        assert loaded.completed_at is None

    def test_complete_session_is_visible_immediately(self, populated_repo, user):
        populated_repo.save_quiz_session(_session(user, "S1"))
        finished = datetime(2024, 5, 1, 12, 0)

        assert populated_repo.complete_quiz_session("S1", 2, finished)

        loaded = populated_repo.get_quiz_session("S1")
        assert loaded.correct_answers == 2
        assert loaded.completed_at == finished

    def test_completed_session_is_never_overwritten(self, populated_repo, user):
        populated_repo.save_quiz_session(_session(user, "S1"))
        first = datetime(2024, 5, 1, 12, 0)
        populated_repo.complete_quiz_session("S1", 2, first)

        assert not populated_repo.complete_quiz_session("S1", 0, datetime(2024, 5, 2))

        loaded = populated_repo.get_quiz_session("S1")
        assert loaded.correct_answers == 2
        assert loaded.completed_at == first

    def test_completing_unknown_session_reports_false(self, populated_repo):
        assert not populated_repo.complete_quiz_session("nope", 1, datetime(2024, 5, 1))

    def test_list_sessions_newest_first(self, populated_repo, user):
        populated_repo.save_quiz_session(
            _session(user, "old", created_at=datetime(2024, 1, 1))
        )
        populated_repo.save_quiz_session(
            _session(user, "new", created_at=datetime(2024, 2, 1))
        )

        assert [s.id for s in populated_repo.list_quiz_sessions(user)] == ["new", "old"]

    def test_session_answers_in_answer_order(self, populated_repo, user):
        populated_repo.save_quiz_session(_session(user, "S1"))
        first = _answer("S1", "Q1", "C1", True)
        second = _answer("S1", "Q2", "C1", False)
        populated_repo.save_answer(first)
        populated_repo.save_answer(second)

        answers = populated_repo.get_session_answers("S1")

        assert [a.id for a in answers] == [first.id, second.id]
        assert [a.is_correct for a in answers] == [True, False]


class TestConceptTallies:
    @pytest.fixture
    def history(self, in_memory_repo, user, guest):
        """User: A 3/2, B 2/0, C 1/1 across two sessions. Guest: B 1/1."""
        in_memory_repo.save_quiz_session(_session(user, "U1"))
        in_memory_repo.save_quiz_session(_session(user, "U2"))
        in_memory_repo.save_quiz_session(_session(guest, "G1"))
        for answer in [
            _answer("U1", "a1", "A", False),
            _answer("U1", "a2", "A", True),
            _answer("U2", "a1", "A", False),
            _answer("U1", "b1", "B", True),
            _answer("U2", "b2", "B", True),
            _answer("U2", "c1", "C", False),
            _answer("G1", "b1", "B", False),
        ]:
            in_memory_repo.save_answer(answer)
        return in_memory_repo

    def test_tallies_per_concept(self, history, user):
        tallies = {t.concept_id: t.as_tuple() for t in history.get_concept_tallies(user)}

        assert tallies == {"A": ("A", 3, 2), "B": ("B", 2, 0), "C": ("C", 1, 1)}

    def test_learners_are_isolated(self, history, guest):
        assert [t.as_tuple() for t in history.get_concept_tallies(guest)] == [
            ("B", 1, 1)
        ]

    def test_new_answer_is_counted_on_next_read(self, history, user):
        history.save_answer(_answer("U2", "b3", "B", False))

        tallies = {t.concept_id: t.as_tuple() for t in history.get_concept_tallies(user)}

        assert tallies["B"] == ("B", 3, 1)

    def test_no_history(self, in_memory_repo, user):
        assert in_memory_repo.get_concept_tallies(user) == []


def test_repository_is_pickle_safe(tmp_path, user):
    """Streamlit may pickle session objects; the connection must not travel."""
    db_manager = DatabaseManager(str(tmp_path / "tutor.db"))
    repo = SQLiteLearningRepository(db_manager)
    repo.save_document(
        Document(
            id="D", user_id=user.user_id, file_name="f.pdf", file_size=1, extracted_text="t"
        )
    )
    repo.save_concept(Concept(id="C", document_id="D", name="n", description="d"))

    restored = pickle.loads(pickle.dumps(repo))
    db_manager.close()

    assert restored.db_manager._shared_connection is None
    assert restored.get_concept("C").name == "n"
    restored.db_manager.close()

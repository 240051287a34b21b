from datetime import datetime
from unittest.mock import MagicMock

import pytest

from src.tutor.adapters.supabase_repository import SupabaseLearningRepository
from src.tutor.domain.models import Question


def _table(rows):
    """A PostgREST query builder whose every chained call ends in ``rows``."""
    table = MagicMock()
    for method in ("select", "eq", "in_", "is_", "order", "limit", "insert", "update"):
        getattr(table, method).return_value = table
    table.execute.return_value = MagicMock(data=rows)
    return table


@pytest.fixture
def tables():
    return {}


@pytest.fixture
def repo(tables):
    client = MagicMock()
    client.table.side_effect = lambda name: tables.setdefault(name, _table([]))
    return SupabaseLearningRepository("http://localhost", "key", client=client)


def _answer_row(answer_id, concept_id, correct):
    return {
        "id": answer_id,
        "quiz_session_id": "S1",
        "question_id": f"q-{answer_id}",
        "concept_id": concept_id,
        "chosen_index": 0,
        "is_correct": correct,
        "explanation": None,
        "answered_at": "2024-05-01T10:00:00",
    }


class TestConceptTallies:
    def test_aggregates_answers_of_learner_sessions(self, repo, tables, user):
        tables["quiz_sessions"] = _table([{"id": "S1"}, {"id": "S2"}])
        tables["answers"] = _table(
            [
                _answer_row("1", "A", False),
                _answer_row("2", "A", True),
                _answer_row("3", "B", False),
            ]
        )

        tallies = [t.as_tuple() for t in repo.get_concept_tallies(user)]

        assert tallies == [("A", 2, 1), ("B", 1, 1)]
        tables["quiz_sessions"].eq.assert_called_with("user_id", "alice")
        tables["answers"].in_.assert_called_with("quiz_session_id", ["S1", "S2"])

    def test_guest_filters_on_guest_column(self, repo, tables, guest):
        assert repo.get_concept_tallies(guest) == []

        tables["quiz_sessions"].eq.assert_called_with("guest_session_id", "guest-1")
        assert "answers" not in tables


class TestQuestions:
    def test_save_questions_inserts_in_chunks(self, repo, tables, question_factory):
        questions = [question_factory("C1") for _ in range(250)]

        repo.save_questions(questions)

        batches = [c.args[0] for c in tables["questions"].insert.call_args_list]
        assert [len(b) for b in batches] == [100, 100, 50]
        assert batches[0][0]["concept_id"] == "C1"

    def test_questions_by_ids_keep_order_and_attach_concepts(self, repo, tables):
        tables["questions"] = _table(
            [
                Question(
                    id=q_id,
                    concept_id="C1",
                    text="?",
                    options=["a", "b", "c", "d"],
                    correct_index=0,
                ).model_dump(mode="json")
                for q_id in ("Q1", "Q2")
            ]
        )
        tables["concepts"] = _table(
            [
                {
                    "id": "C1",
                    "document_id": "D1",
                    "name": "Cells",
                    "description": "d",
                    "created_at": "2024-05-01T10:00:00",
                }
            ]
        )

        items = repo.get_questions_by_ids(["Q2", "Q1", "missing"])

        assert [i.id for i in items] == ["Q2", "Q1"]
        assert items[0].concept.name == "Cells"


def test_complete_session_updates_only_open_row(repo, tables):
    tables["quiz_sessions"] = _table([{"id": "S1"}])

    assert repo.complete_quiz_session("S1", 3, datetime(2024, 5, 1, 9, 30))

    table = tables["quiz_sessions"]
    table.update.assert_called_once_with(
        {"correct_answers": 3, "completed_at": "2024-05-01T09:30:00"}
    )
    table.eq.assert_called_once_with("id", "S1")
    table.is_.assert_called_once_with("completed_at", "null")


def test_complete_session_reports_already_completed(repo, tables):
    # No row matched the open-session filter
    assert not repo.complete_quiz_session("S1", 3, datetime(2024, 5, 1, 9, 30))

from unittest.mock import MagicMock, Mock

import pytest

from src.tutor.application.retest import RetestOrchestrator
from src.tutor.domain.errors import (
    GenerationError,
    LearnerRequiredError,
    RetestGenerationError,
)
from src.tutor.domain.models import Concept, Document, GeneratedQuestion
from src.tutor.domain.ports import ILearningRepository


def _generated(label: str, n: int = 2) -> list[GeneratedQuestion]:
    return [
        GeneratedQuestion(
            question_text=f"Fresh {label} {i}?",
            options=["a", "b", "c", "d"],
            correct_answer=2,
        )
        for i in range(n)
    ]


@pytest.fixture
def seeded_repo(in_memory_repo, sample_document):
    """Two concepts, X and Y, on one document."""
    in_memory_repo.save_document(sample_document)
    for c_id in ("X", "Y"):
        in_memory_repo.save_concept(
            Concept(
                id=c_id,
                document_id=sample_document.id,
                name=f"Concept {c_id}",
                description=f"About {c_id}",
            )
        )
    return in_memory_repo


@pytest.fixture
def generator():
    return MagicMock()


def _by_concept(responses: dict):
    """side_effect that answers per concept name, raising when given an exception."""

    def generate(name, description, context):
        result = responses[name]
        if isinstance(result, Exception):
            raise result
        return result

    return generate


class TestCreateRetest:
    def test_creates_one_session_over_fresh_questions(self, seeded_repo, generator, user):
        generator.generate_concept_questions.side_effect = _by_concept(
            {"Concept X": _generated("X"), "Concept Y": _generated("Y", 3)}
        )
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(user, ["X", "Y"])

        assert result.skipped_concept_ids == []
        assert result.session.total_questions == 5
        assert result.session.question_ids == [q.id for q in result.questions]
        assert result.session.user_id == user.user_id
        assert result.session.is_retest

        stored = seeded_repo.get_quiz_session(result.session.id)
        assert stored.question_ids == result.session.question_ids
        assert [q.id for q in seeded_repo.get_questions_by_ids(stored.question_ids)] == (
            stored.question_ids
        )

    def test_failed_concept_is_skipped(self, seeded_repo, generator, user):
        """Y fails, so the session contains only X's questions."""
        generator.generate_concept_questions.side_effect = _by_concept(
            {"Concept X": _generated("X"), "Concept Y": GenerationError("boom")}
        )
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(user, ["X", "Y"])

        assert {q.concept_id for q in result.questions} == {"X"}
        assert result.session.total_questions == 2
        assert result.skipped_concept_ids == ["Y"]

    def test_empty_generation_counts_as_failure(self, seeded_repo, generator, user):
        generator.generate_concept_questions.side_effect = _by_concept(
            {"Concept X": [], "Concept Y": _generated("Y", 1)}
        )
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(user, ["X", "Y"])

        assert result.skipped_concept_ids == ["X"]
        assert result.session.total_questions == 1

    def test_unknown_concepts_are_skipped(self, seeded_repo, generator, guest):
        generator.generate_concept_questions.return_value = _generated("X")
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(guest, ["X", "ghost"])

        assert result.skipped_concept_ids == ["ghost"]
        assert result.session.guest_session_id == guest.guest_session_id
        generator.generate_concept_questions.assert_called_once()

    def test_duplicate_ids_generate_once(self, seeded_repo, generator, user):
        generator.generate_concept_questions.return_value = _generated("X")
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(user, ["X", "X"])

        assert result.session.total_questions == 2
        generator.generate_concept_questions.assert_called_once()

    def test_context_is_document_excerpt(self, seeded_repo, generator, user, sample_document):
        generator.generate_concept_questions.return_value = _generated("X")
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        orchestrator.create_retest(user, ["X"])

        name, description, context = generator.generate_concept_questions.call_args.args
        assert (name, description) == ("Concept X", "About X")
        assert sample_document.extracted_text.startswith(context)

    def test_all_failures_raise_and_create_nothing(self, generator, user, sample_document):
        repo = Mock(spec=ILearningRepository)
        repo.get_concepts_by_ids.return_value = {
            c_id: Concept(id=c_id, document_id=sample_document.id, name=c_id, description="")
            for c_id in ("X", "Y")
        }
        repo.get_document.return_value = sample_document
        generator.generate_concept_questions.side_effect = GenerationError("down")
        orchestrator = RetestOrchestrator(repo, generator)

        with pytest.raises(RetestGenerationError) as exc:
            orchestrator.create_retest(user, ["X", "Y"])

        assert exc.value.concept_ids == ["X", "Y"]
        assert str(exc.value) == "Failed to generate any questions"
        repo.save_quiz_session.assert_not_called()
        repo.save_questions.assert_not_called()

    def test_unexpected_generator_exception_is_contained(self, seeded_repo, generator, user):
        generator.generate_concept_questions.side_effect = _by_concept(
            {"Concept X": RuntimeError("network"), "Concept Y": _generated("Y")}
        )
        orchestrator = RetestOrchestrator(seeded_repo, generator)

        result = orchestrator.create_retest(user, ["X", "Y"])

        assert result.skipped_concept_ids == ["X"]

    def test_requires_learner(self, seeded_repo, generator):
        with pytest.raises(LearnerRequiredError):
            RetestOrchestrator(seeded_repo, generator).create_retest(None, ["X"])

    def test_requires_concepts(self, seeded_repo, generator, user):
        with pytest.raises(ValueError):
            RetestOrchestrator(seeded_repo, generator).create_retest(user, [])

    def test_concept_without_document_is_skipped(self, in_memory_repo, generator, user):
        in_memory_repo.save_concept(
            Concept(id="orphan", document_id="gone", name="Orphan", description="")
        )
        orchestrator = RetestOrchestrator(in_memory_repo, generator)

        with pytest.raises(RetestGenerationError):
            orchestrator.create_retest(user, ["orphan"])

        generator.generate_concept_questions.assert_not_called()
        assert in_memory_repo.list_quiz_sessions(user) == []


def test_session_document_follows_first_stored_concept(in_memory_repo, generator, user):
    for doc_id in ("D1", "D2"):
        in_memory_repo.save_document(
            Document(
                id=doc_id,
                user_id=user.user_id,
                file_name=f"{doc_id}.pdf",
                file_size=1,
                extracted_text="text",
            )
        )
    in_memory_repo.save_concept(Concept(id="A", document_id="D1", name="A", description=""))
    in_memory_repo.save_concept(Concept(id="B", document_id="D2", name="B", description=""))
    generator.generate_concept_questions.side_effect = _by_concept(
        {"A": GenerationError("no"), "B": _generated("B")}
    )

    result = RetestOrchestrator(in_memory_repo, generator).create_retest(user, ["A", "B"])

    assert result.session.document_id == "D2"

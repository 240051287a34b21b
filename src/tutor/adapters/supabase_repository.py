from datetime import datetime
from typing import Any, cast

from src.shared.telemetry import Telemetry, measure_time
from src.tutor.domain.models import (
    AnswerRecord,
    Concept,
    ConceptTally,
    Document,
    Learner,
    Question,
    QuestionWithConcept,
    QuizSession,
)
from src.tutor.domain.ports import ILearningRepository
from src.tutor.domain.weak_concepts import tally_answers
from supabase import Client, create_client


def _learner_column(learner: Learner) -> str:
    return "user_id" if learner.user_id else "guest_session_id"


class SupabaseLearningRepository(ILearningRepository):
    """
    Postgres via PostgREST. Tables mirror the SQLite schema; ``options`` and
    ``question_ids`` are JSON columns.
    """

    CHUNK_SIZE = 100

    def __init__(self, url: str, key: str, client: Client | None = None) -> None:
        self.telemetry = Telemetry("SupabaseRepository")
        try:
            self.client: Client = client or create_client(url, key)
        except Exception as e:
            self.telemetry.log_error("Failed to initialize Supabase client", e)
            raise

    def _rows(self, response: Any) -> list[dict[str, Any]]:
        return cast(list[dict[str, Any]], response.data or [])

    # --- Documents ---
    def save_document(self, document: Document) -> None:
        self.client.table("documents").insert(document.model_dump(mode="json")).execute()

    def get_document(self, document_id: str) -> Document | None:
        response = (
            self.client.table("documents").select("*").eq("id", document_id).execute()
        )
        rows = self._rows(response)
        return Document.model_validate(rows[0]) if rows else None

    def list_documents(self, learner: Learner) -> list[Document]:
        response = (
            self.client.table("documents")
            .select("*")
            .eq(_learner_column(learner), learner.key)
            .order("uploaded_at", desc=True)
            .execute()
        )
        return [Document.model_validate(row) for row in self._rows(response)]

    # --- Concepts ---
    def save_concept(self, concept: Concept) -> None:
        self.client.table("concepts").insert(concept.model_dump(mode="json")).execute()

    def get_concept(self, concept_id: str) -> Concept | None:
        return self.get_concepts_by_ids([concept_id]).get(concept_id)

    def get_concepts_by_ids(self, concept_ids: list[str]) -> dict[str, Concept]:
        if not concept_ids:
            return {}
        response = (
            self.client.table("concepts").select("*").in_("id", concept_ids).execute()
        )
        concepts = [Concept.model_validate(row) for row in self._rows(response)]
        return {c.id: c for c in concepts}

    # --- Questions ---
    def save_questions(self, questions: list[Question]) -> None:
        data = [q.model_dump(mode="json") for q in questions]
        # Chunked to keep request payloads small
        for i in range(0, len(data), self.CHUNK_SIZE):
            self.client.table("questions").insert(data[i : i + self.CHUNK_SIZE]).execute()

    def get_question(self, question_id: str) -> Question | None:
        response = (
            self.client.table("questions").select("*").eq("id", question_id).execute()
        )
        rows = self._rows(response)
        return Question.model_validate(rows[0]) if rows else None

    def _attach_concepts(self, rows: list[dict[str, Any]]) -> list[QuestionWithConcept]:
        questions = [Question.model_validate(row) for row in rows]
        concepts = self.get_concepts_by_ids(sorted({q.concept_id for q in questions}))
        return [
            QuestionWithConcept(question=q, concept=concepts[q.concept_id])
            for q in questions
            if q.concept_id in concepts
        ]

    @measure_time("sb_get_questions_with_concepts")
    def get_questions_with_concepts(
        self, document_id: str
    ) -> list[QuestionWithConcept]:
        concept_rows = self._rows(
            self.client.table("concepts")
            .select("id")
            .eq("document_id", document_id)
            .order("created_at")
            .execute()
        )
        concept_ids = [row["id"] for row in concept_rows]
        if not concept_ids:
            return []

        response = (
            self.client.table("questions")
            .select("*")
            .in_("concept_id", concept_ids)
            .order("created_at")
            .execute()
        )
        return self._attach_concepts(self._rows(response))

    def get_questions_by_ids(
        self, question_ids: list[str]
    ) -> list[QuestionWithConcept]:
        if not question_ids:
            return []
        response = (
            self.client.table("questions").select("*").in_("id", question_ids).execute()
        )
        by_id = {item.id: item for item in self._attach_concepts(self._rows(response))}
        return [by_id[q_id] for q_id in question_ids if q_id in by_id]

    # --- Quiz sessions ---
    def save_quiz_session(self, session: QuizSession) -> None:
        self.client.table("quiz_sessions").insert(
            session.model_dump(mode="json")
        ).execute()

    def get_quiz_session(self, session_id: str) -> QuizSession | None:
        response = (
            self.client.table("quiz_sessions")
            .select("*")
            .eq("id", session_id)
            .execute()
        )
        rows = self._rows(response)
        return QuizSession.model_validate(rows[0]) if rows else None

    def complete_quiz_session(
        self, session_id: str, correct_answers: int, completed_at: datetime
    ) -> bool:
        response = (
            self.client.table("quiz_sessions")
            .update(
                {
                    "correct_answers": correct_answers,
                    "completed_at": completed_at.isoformat(),
                }
            )
            .eq("id", session_id)
            .is_("completed_at", "null")
            .execute()
        )
        return bool(self._rows(response))

    def list_quiz_sessions(self, learner: Learner) -> list[QuizSession]:
        response = (
            self.client.table("quiz_sessions")
            .select("*")
            .eq(_learner_column(learner), learner.key)
            .order("created_at", desc=True)
            .execute()
        )
        return [QuizSession.model_validate(row) for row in self._rows(response)]

    # --- Answers ---
    @measure_time("sb_save_answer")
    def save_answer(self, answer: AnswerRecord) -> None:
        try:
            self.client.table("answers").insert(answer.model_dump(mode="json")).execute()
        except Exception as e:
            self.telemetry.log_error(
                f"save_answer failed for session {answer.quiz_session_id}", e
            )
            raise

    def get_session_answers(self, session_id: str) -> list[AnswerRecord]:
        response = (
            self.client.table("answers")
            .select("*")
            .eq("quiz_session_id", session_id)
            .order("answered_at")
            .execute()
        )
        return [AnswerRecord.model_validate(row) for row in self._rows(response)]

    @measure_time("sb_get_concept_tallies")
    def get_concept_tallies(self, learner: Learner) -> list[ConceptTally]:
        session_rows = self._rows(
            self.client.table("quiz_sessions")
            .select("id")
            .eq(_learner_column(learner), learner.key)
            .execute()
        )
        session_ids = [row["id"] for row in session_rows]
        if not session_ids:
            return []

        response = (
            self.client.table("answers")
            .select("*")
            .in_("quiz_session_id", session_ids)
            .execute()
        )
        answers = [AnswerRecord.model_validate(row) for row in self._rows(response)]
        return tally_answers(answers)

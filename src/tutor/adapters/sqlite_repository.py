import json
import sqlite3
from datetime import datetime
from typing import Any

from src.shared.telemetry import Telemetry, measure_time
from src.tutor.adapters.db_manager import DatabaseManager
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

_QUESTION_WITH_CONCEPT_COLUMNS = """
    q.id, q.concept_id, q.question_text, q.options_json, q.correct_index,
    q.created_at, c.id, c.document_id, c.name, c.description, c.created_at
"""


def _learner_column(learner: Learner) -> str:
    return "user_id" if learner.user_id else "guest_session_id"


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteLearningRepository(ILearningRepository):
    def __init__(self, db_manager: DatabaseManager) -> None:
        self.telemetry = Telemetry("SQLiteRepository")
        self.db_manager = db_manager

    def _get_connection(self) -> sqlite3.Connection:
        return self.db_manager.get_connection()

    # --- Row Mappers ---
    @staticmethod
    def _to_document(row: Any) -> Document:
        return Document(
            id=row[0],
            user_id=row[1],
            guest_session_id=row[2],
            file_name=row[3],
            file_size=row[4],
            extracted_text=row[5],
            uploaded_at=datetime.fromisoformat(row[6]),
        )

    @staticmethod
    def _to_concept(row: Any) -> Concept:
        return Concept(
            id=row[0],
            document_id=row[1],
            name=row[2],
            description=row[3],
            created_at=datetime.fromisoformat(row[4]),
        )

    @staticmethod
    def _to_question(row: Any) -> Question:
        return Question(
            id=row[0],
            concept_id=row[1],
            text=row[2],
            options=json.loads(row[3]),
            correct_index=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )

    def _to_question_with_concept(self, row: Any) -> QuestionWithConcept:
        return QuestionWithConcept(
            question=self._to_question(row[:6]), concept=self._to_concept(row[6:])
        )

    @staticmethod
    def _to_session(row: Any) -> QuizSession:
        return QuizSession(
            id=row[0],
            document_id=row[1],
            user_id=row[2],
            guest_session_id=row[3],
            total_questions=row[4],
            correct_answers=row[5],
            question_ids=json.loads(row[6] or "[]"),
            completed_at=_parse_dt(row[7]),
            created_at=datetime.fromisoformat(row[8]),
        )

    @staticmethod
    def _to_answer(row: Any) -> AnswerRecord:
        return AnswerRecord(
            id=row[0],
            quiz_session_id=row[1],
            question_id=row[2],
            concept_id=row[3],
            chosen_index=row[4],
            is_correct=bool(row[5]),
            explanation=row[6],
            answered_at=datetime.fromisoformat(row[7]),
        )

    # --- Documents ---
    def save_document(self, document: Document) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO documents (id, user_id, guest_session_id, file_name,
                                   file_size, extracted_text, uploaded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                document.user_id,
                document.guest_session_id,
                document.file_name,
                document.file_size,
                document.extracted_text,
                document.uploaded_at.isoformat(),
            ),
        )
        conn.commit()

    def get_document(self, document_id: str) -> Document | None:
        row = (
            self._get_connection()
            .execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            .fetchone()
        )
        return self._to_document(row) if row else None

    def list_documents(self, learner: Learner) -> list[Document]:
        column = _learner_column(learner)
        rows = (
            self._get_connection()
            .execute(
                f"SELECT * FROM documents WHERE {column} = ? ORDER BY uploaded_at DESC",
                (learner.key,),
            )
            .fetchall()
        )
        return [self._to_document(row) for row in rows]

    # --- Concepts ---
    def save_concept(self, concept: Concept) -> None:
        conn = self._get_connection()
        conn.execute(
            "INSERT INTO concepts (id, document_id, name, description, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                concept.id,
                concept.document_id,
                concept.name,
                concept.description,
                concept.created_at.isoformat(),
            ),
        )
        conn.commit()

    def get_concept(self, concept_id: str) -> Concept | None:
        row = (
            self._get_connection()
            .execute(
                "SELECT id, document_id, name, description, created_at "
                "FROM concepts WHERE id = ?",
                (concept_id,),
            )
            .fetchone()
        )
        return self._to_concept(row) if row else None

    def get_concepts_by_ids(self, concept_ids: list[str]) -> dict[str, Concept]:
        if not concept_ids:
            return {}
        placeholders = ",".join(["?"] * len(concept_ids))
        rows = (
            self._get_connection()
            .execute(
                "SELECT id, document_id, name, description, created_at "
                f"FROM concepts WHERE id IN ({placeholders})",
                concept_ids,
            )
            .fetchall()
        )
        return {row[0]: self._to_concept(row) for row in rows}

    # --- Questions ---
    def save_questions(self, questions: list[Question]) -> None:
        conn = self._get_connection()
        try:
            conn.executemany(
                """
                INSERT INTO questions (id, concept_id, question_text, options_json,
                                       correct_index, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        q.id,
                        q.concept_id,
                        q.text,
                        json.dumps(q.options),
                        q.correct_index,
                        q.created_at.isoformat(),
                    )
                    for q in questions
                ],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            self.telemetry.log_error("save_questions failed", e, count=len(questions))
            raise

    def get_question(self, question_id: str) -> Question | None:
        row = (
            self._get_connection()
            .execute(
                "SELECT id, concept_id, question_text, options_json, correct_index, "
                "created_at FROM questions WHERE id = ?",
                (question_id,),
            )
            .fetchone()
        )
        return self._to_question(row) if row else None

    @measure_time("db_get_questions_with_concepts")
    def get_questions_with_concepts(
        self, document_id: str
    ) -> list[QuestionWithConcept]:
        rows = (
            self._get_connection()
            .execute(
                f"""
                SELECT {_QUESTION_WITH_CONCEPT_COLUMNS}
                FROM questions q
                         INNER JOIN concepts c ON q.concept_id = c.id
                WHERE c.document_id = ?
                ORDER BY c.created_at, q.created_at, q.rowid
                """,
                (document_id,),
            )
            .fetchall()
        )
        return [self._to_question_with_concept(row) for row in rows]

    def get_questions_by_ids(
        self, question_ids: list[str]
    ) -> list[QuestionWithConcept]:
        if not question_ids:
            return []
        placeholders = ",".join(["?"] * len(question_ids))
        rows = (
            self._get_connection()
            .execute(
                f"""
                SELECT {_QUESTION_WITH_CONCEPT_COLUMNS}
                FROM questions q
                         INNER JOIN concepts c ON q.concept_id = c.id
                WHERE q.id IN ({placeholders})
                """,
                question_ids,
            )
            .fetchall()
        )
        by_id = {row[0]: self._to_question_with_concept(row) for row in rows}
        return [by_id[q_id] for q_id in question_ids if q_id in by_id]

    # --- Quiz sessions ---
    def save_quiz_session(self, session: QuizSession) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO quiz_sessions (id, document_id, user_id, guest_session_id,
                                       total_questions, correct_answers,
                                       question_ids_json, completed_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.document_id,
                session.user_id,
                session.guest_session_id,
                session.total_questions,
                session.correct_answers,
                json.dumps(session.question_ids),
                session.completed_at.isoformat() if session.completed_at else None,
                session.created_at.isoformat(),
            ),
        )
        conn.commit()

    def get_quiz_session(self, session_id: str) -> QuizSession | None:
        row = (
            self._get_connection()
            .execute("SELECT * FROM quiz_sessions WHERE id = ?", (session_id,))
            .fetchone()
        )
        return self._to_session(row) if row else None

    def complete_quiz_session(
        self, session_id: str, correct_answers: int, completed_at: datetime
    ) -> bool:
        conn = self._get_connection()
        cursor = conn.execute(
            "UPDATE quiz_sessions SET correct_answers = ?, completed_at = ? "
            "WHERE id = ? AND completed_at IS NULL",
            (correct_answers, completed_at.isoformat(), session_id),
        )
        conn.commit()
        return cursor.rowcount == 1

    def list_quiz_sessions(self, learner: Learner) -> list[QuizSession]:
        column = _learner_column(learner)
        rows = (
            self._get_connection()
            .execute(
                f"SELECT * FROM quiz_sessions WHERE {column} = ? "
                "ORDER BY created_at DESC",
                (learner.key,),
            )
            .fetchall()
        )
        return [self._to_session(row) for row in rows]

    # --- Answers ---
    @measure_time("db_save_answer")
    def save_answer(self, answer: AnswerRecord) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO answers (id, quiz_session_id, question_id, concept_id,
                                     chosen_index, is_correct, explanation, answered_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    answer.id,
                    answer.quiz_session_id,
                    answer.question_id,
                    answer.concept_id,
                    answer.chosen_index,
                    1 if answer.is_correct else 0,
                    answer.explanation,
                    answer.answered_at.isoformat(),
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error(
                f"save_answer failed for session {answer.quiz_session_id}", e
            )
            raise

    def get_session_answers(self, session_id: str) -> list[AnswerRecord]:
        rows = (
            self._get_connection()
            .execute(
                "SELECT * FROM answers WHERE quiz_session_id = ? "
                "ORDER BY answered_at, rowid",
                (session_id,),
            )
            .fetchall()
        )
        return [self._to_answer(row) for row in rows]

    @measure_time("db_get_concept_tallies")
    def get_concept_tallies(self, learner: Learner) -> list[ConceptTally]:
        column = _learner_column(learner)
        sql = f"""
              SELECT a.concept_id,
                     COUNT(a.id) AS total,
                     SUM(CASE WHEN a.is_correct = 0 THEN 1 ELSE 0 END) AS incorrect
              FROM answers a
                       INNER JOIN quiz_sessions s ON a.quiz_session_id = s.id
              WHERE s.{column} = ?
              GROUP BY a.concept_id
              ORDER BY incorrect DESC, a.concept_id
              """
        rows = self._get_connection().execute(sql, (learner.key,)).fetchall()
        return [
            ConceptTally(
                concept_id=row[0], total_questions=row[1], incorrect_count=row[2] or 0
            )
            for row in rows
        ]

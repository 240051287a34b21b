from datetime import date, datetime

from src.config import AppConfig
from src.shared.telemetry import Telemetry, measure_time
from src.tutor.domain.errors import (
    DocumentTooShortError,
    LearnerRequiredError,
    NotFoundError,
    SessionAlreadyCompletedError,
    UnsupportedDocumentError,
)
from src.tutor.domain.models import (
    AnswerRecord,
    Concept,
    DashboardSummary,
    Document,
    Learner,
    QuestionWithConcept,
    QuizSession,
    RecentSession,
    ReportEntry,
    SessionReport,
    UploadResult,
    WeakConcept,
)
from src.tutor.domain.ports import (
    IContentGenerator,
    IDocumentTextExtractor,
    ILearningRepository,
)
from src.tutor.domain.prioritizer import prioritize_questions
from src.tutor.domain.weak_concepts import priority_map, rank_weak_concepts


def _require_learner(learner: Learner | None) -> Learner:
    if learner is None:
        raise LearnerRequiredError()
    return learner


def day_streak(sessions: list[QuizSession], today: date) -> int:
    """Consecutive calendar days with at least one session, ending today."""
    days = sorted({s.created_at.date() for s in sessions}, reverse=True)
    streak = 0
    for offset, day in enumerate(days):
        if (today - day).days != offset:
            break
        streak += 1
    return streak


class LearningService:
    def __init__(
        self,
        repo: ILearningRepository,
        generator: IContentGenerator,
        extractor: IDocumentTextExtractor,
    ) -> None:
        self.repo = repo
        self.generator = generator
        self.extractor = extractor
        self.telemetry = Telemetry("LearningService")

    # --- Documents ---
    @measure_time("upload_document")
    def upload_document(
        self, learner: Learner | None, file_name: str, data: bytes
    ) -> UploadResult:
        learner = _require_learner(learner)
        if not AppConfig.is_supported_file(file_name):
            raise UnsupportedDocumentError(file_name)

        text = self.extractor.extract_text(file_name, data)
        if len(text.strip()) < AppConfig.MIN_DOCUMENT_CHARS:
            raise DocumentTooShortError(len(text.strip()))

        document = Document(
            user_id=learner.user_id,
            guest_session_id=learner.guest_session_id,
            file_name=file_name,
            file_size=len(data),
            extracted_text=text,
        )
        self.repo.save_document(document)

        extracted = self.generator.extract_concepts(text)

        questions_count = 0
        for item in extracted:
            concept = Concept(
                document_id=document.id,
                name=item.concept.concept_name,
                description=item.concept.concept_description,
            )
            self.repo.save_concept(concept)
            questions = [q.to_question(concept.id) for q in item.questions]
            self.repo.save_questions(questions)
            questions_count += len(questions)

        self.telemetry.log_info(
            "Document processed",
            document_id=document.id,
            concepts=len(extracted),
            questions=questions_count,
        )
        return UploadResult(
            document_id=document.id,
            file_name=document.file_name,
            concepts_count=len(extracted),
            questions_count=questions_count,
        )

    def list_documents(self, learner: Learner | None) -> list[Document]:
        return self.repo.list_documents(_require_learner(learner))

    # --- Weak concepts & prioritization ---
    @measure_time("get_weak_concepts")
    def get_weak_concepts(self, learner: Learner) -> list[WeakConcept]:
        tallies = self.repo.get_concept_tallies(learner)
        if not tallies:
            return []
        concepts = self.repo.get_concepts_by_ids([t.concept_id for t in tallies])
        return rank_weak_concepts(tallies, concepts)

    @measure_time("get_prioritized_questions")
    def get_prioritized_questions(
        self, document_id: str, learner: Learner | None
    ) -> list[QuestionWithConcept]:
        pool = self.repo.get_questions_with_concepts(document_id)
        if learner is None:
            return prioritize_questions(pool, None)

        priorities = priority_map(self.get_weak_concepts(learner))
        self.telemetry.log_info(
            "Prioritizing questions",
            document_id=document_id,
            pool=len(pool),
            weak_concepts=len(priorities),
        )
        return prioritize_questions(pool, priorities)

    # --- Quiz sessions ---
    @measure_time("start_quiz")
    def start_quiz(
        self, document_id: str, learner: Learner | None
    ) -> tuple[QuizSession, list[QuestionWithConcept]]:
        learner = _require_learner(learner)
        if self.repo.get_document(document_id) is None:
            raise NotFoundError("Document", document_id)

        questions = self.get_prioritized_questions(document_id, learner)
        session = QuizSession(
            document_id=document_id,
            user_id=learner.user_id,
            guest_session_id=learner.guest_session_id,
            total_questions=len(questions),
        )
        self.repo.save_quiz_session(session)
        self.telemetry.log_info(
            "Quiz started", session_id=session.id, questions=len(questions)
        )
        return session, questions

    def get_quiz_session(self, session_id: str) -> QuizSession:
        session = self.repo.get_quiz_session(session_id)
        if session is None:
            raise NotFoundError("Quiz session", session_id)
        return session

    def get_session_questions(
        self, session_id: str, learner: Learner | None
    ) -> list[QuestionWithConcept]:
        session = self.get_quiz_session(session_id)
        if session.question_ids:
            return self.repo.get_questions_by_ids(session.question_ids)
        return self.get_prioritized_questions(session.document_id, learner)

    @measure_time("submit_answer")
    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        chosen_index: int,
        concept_id: str | None = None,
    ) -> AnswerRecord:
        session = self.get_quiz_session(session_id)
        question = self.repo.get_question(question_id)
        if question is None:
            raise NotFoundError("Question", question_id)
        if not 0 <= chosen_index < len(question.options):
            raise ValueError(f"Answer index {chosen_index} out of range")
        if concept_id is not None and concept_id != question.concept_id:
            raise ValueError(
                f"Concept {concept_id} does not own question {question_id}"
            )

        is_correct = question.is_correct(chosen_index)
        explanation = None
        if not is_correct:
            concept = self.repo.get_concept(question.concept_id)
            if concept is not None:
                explanation = self.generator.explain_mistake(
                    concept,
                    question.text,
                    question.correct_option,
                    question.options[chosen_index],
                )

        answer = AnswerRecord(
            quiz_session_id=session.id,
            question_id=question.id,
            concept_id=question.concept_id,
            chosen_index=chosen_index,
            is_correct=is_correct,
            explanation=explanation,
        )
        self.repo.save_answer(answer)

        self.telemetry.log_info(
            "Answer Submitted",
            session_id=session.id,
            q_id=question.id,
            correct=is_correct,
        )
        return answer

    @measure_time("complete_session")
    def complete_session(self, session_id: str, correct_answers: int) -> QuizSession:
        session = self.get_quiz_session(session_id)
        if session.is_completed:
            raise SessionAlreadyCompletedError(session_id)
        if not 0 <= correct_answers <= session.total_questions:
            raise ValueError(
                f"correct_answers {correct_answers} outside "
                f"0..{session.total_questions}"
            )

        completed_at = datetime.now()
        stored = self.repo.complete_quiz_session(
            session_id, correct_answers, completed_at
        )
        if not stored:
            # Another request completed it between the read and the write
            raise SessionAlreadyCompletedError(session_id)
        self.telemetry.log_info(
            "Session Finalized", session_id=session_id, score=correct_answers
        )
        return session.model_copy(
            update={"correct_answers": correct_answers, "completed_at": completed_at}
        )

    def get_session_report(self, session_id: str) -> SessionReport:
        session = self.get_quiz_session(session_id)
        answers = self.repo.get_session_answers(session_id)
        questions = {
            item.id: item
            for item in self.repo.get_questions_by_ids([a.question_id for a in answers])
        }

        entries = []
        for answer in answers:
            item = questions.get(answer.question_id)
            if item is None:
                self.telemetry.log_warning(
                    "Report skips answer with missing question",
                    answer_id=answer.id,
                    q_id=answer.question_id,
                )
                continue
            entries.append(
                ReportEntry(answer=answer, question=item.question, concept=item.concept)
            )

        return SessionReport(
            session=session,
            document=self.repo.get_document(session.document_id),
            entries=entries,
        )

    # --- Dashboard ---
    @measure_time("get_dashboard")
    def get_dashboard(
        self, learner: Learner | None, today: date | None = None
    ) -> DashboardSummary:
        learner = _require_learner(learner)
        today = today or date.today()

        sessions = self.repo.list_quiz_sessions(learner)
        scored = [s for s in sessions if s.total_questions > 0]
        average = (
            sum(s.accuracy for s in scored) / len(scored) * 100 if scored else 0.0
        )

        recent = [
            RecentSession(session=s, document=self.repo.get_document(s.document_id))
            for s in sessions[: AppConfig.RECENT_SESSIONS_LIMIT]
        ]

        return DashboardSummary(
            total_quizzes=len(sessions),
            average_accuracy=average,
            streak=day_streak(sessions, today),
            weak_concepts=self.get_weak_concepts(learner),
            recent_sessions=recent,
        )

    # --- Concept tutoring ---
    def get_concept(self, concept_id: str) -> Concept:
        concept = self.repo.get_concept(concept_id)
        if concept is None:
            raise NotFoundError("Concept", concept_id)
        return concept

    @measure_time("teach_concept")
    def teach_concept(self, concept_id: str) -> str:
        return self.generator.generate_lesson(self.get_concept(concept_id))

    @measure_time("ask_concept_question")
    def ask_concept_question(self, concept_id: str, question: str) -> str:
        if not question.strip():
            raise ValueError("Question must not be empty")
        return self.generator.answer_concept_question(
            self.get_concept(concept_id), question
        )

from abc import ABC, abstractmethod
from datetime import datetime

from src.tutor.domain.models import (
    AnswerRecord,
    Concept,
    ConceptTally,
    ConceptWithQuestions,
    Document,
    GeneratedQuestion,
    Learner,
    Question,
    QuestionWithConcept,
    QuizSession,
)


class ILearningRepository(ABC):
    """
    Persistence port. A saved answer must be visible to the very next
    get_concept_tallies call for the same learner.
    """

    # --- Documents ---
    @abstractmethod
    def save_document(self, document: Document) -> None:
        pass

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None:
        pass

    @abstractmethod
    def list_documents(self, learner: Learner) -> list[Document]:
        pass

    # --- Concepts ---
    @abstractmethod
    def save_concept(self, concept: Concept) -> None:
        pass

    @abstractmethod
    def get_concept(self, concept_id: str) -> Concept | None:
        pass

    @abstractmethod
    def get_concepts_by_ids(self, concept_ids: list[str]) -> dict[str, Concept]:
        pass

    # --- Questions ---
    @abstractmethod
    def save_questions(self, questions: list[Question]) -> None:
        pass

    @abstractmethod
    def get_question(self, question_id: str) -> Question | None:
        pass

    @abstractmethod
    def get_questions_with_concepts(
        self, document_id: str
    ) -> list[QuestionWithConcept]:
        pass

    @abstractmethod
    def get_questions_by_ids(
        self, question_ids: list[str]
    ) -> list[QuestionWithConcept]:
        """Returns questions in the order of question_ids, skipping unknown ids."""
        pass

    # --- Quiz sessions ---
    @abstractmethod
    def save_quiz_session(self, session: QuizSession) -> None:
        pass

    @abstractmethod
    def get_quiz_session(self, session_id: str) -> QuizSession | None:
        pass

    @abstractmethod
    def complete_quiz_session(
        self, session_id: str, correct_answers: int, completed_at: datetime
    ) -> bool:
        """
        Records the score of a session that is not completed yet. Returns False
        when the session was already completed (or does not exist).
        """
        pass

    @abstractmethod
    def list_quiz_sessions(self, learner: Learner) -> list[QuizSession]:
        """Newest first."""
        pass

    # --- Answers ---
    @abstractmethod
    def save_answer(self, answer: AnswerRecord) -> None:
        pass

    @abstractmethod
    def get_session_answers(self, session_id: str) -> list[AnswerRecord]:
        """Oldest first."""
        pass

    @abstractmethod
    def get_concept_tallies(self, learner: Learner) -> list[ConceptTally]:
        """
        Per-concept attempt and incorrect counts across the learner's
        whole answer history.
        """
        pass


class IContentGenerator(ABC):
    @abstractmethod
    def extract_concepts(self, text: str) -> list[ConceptWithQuestions]:
        pass

    @abstractmethod
    def generate_concept_questions(
        self, concept_name: str, concept_description: str, context: str
    ) -> list[GeneratedQuestion]:
        pass

    @abstractmethod
    def explain_mistake(
        self,
        concept: Concept,
        question_text: str,
        correct_answer: str,
        user_answer: str,
    ) -> str:
        pass

    @abstractmethod
    def generate_lesson(self, concept: Concept) -> str:
        pass

    @abstractmethod
    def answer_concept_question(self, concept: Concept, student_question: str) -> str:
        pass


class IDocumentTextExtractor(ABC):
    @abstractmethod
    def extract_text(self, file_name: str, data: bytes) -> str:
        pass

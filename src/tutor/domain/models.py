import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from src.config import AppConfig


def _new_id() -> str:
    return str(uuid.uuid4())


# --- Enums ---
class OptionKey(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @classmethod
    def from_index(cls, index: int) -> "OptionKey":
        return list(cls)[index]


# --- Identity ---
class Learner(BaseModel):
    """
    Either an authenticated user or an anonymous guest.
    The two keys are mutually exclusive.
    """

    user_id: str | None = None
    guest_session_id: str | None = None

    @field_validator("user_id", "guest_session_id")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _exactly_one_key(self) -> "Learner":
        if bool(self.user_id) == bool(self.guest_session_id):
            raise ValueError(
                "Learner needs exactly one of user_id or guest_session_id"
            )
        return self

    @classmethod
    def authenticated(cls, user_id: str) -> "Learner":
        return cls(user_id=user_id)

    @classmethod
    def guest(cls, guest_session_id: str) -> "Learner":
        return cls(guest_session_id=guest_session_id)

    @property
    def is_guest(self) -> bool:
        return bool(self.guest_session_id)

    @property
    def key(self) -> str:
        return self.user_id or self.guest_session_id or ""


# --- Entities ---
class Document(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str | None = None
    guest_session_id: str | None = None
    file_name: str
    file_size: int
    extracted_text: str
    uploaded_at: datetime = Field(default_factory=datetime.now)


class Concept(BaseModel):
    id: str = Field(default_factory=_new_id)
    document_id: str
    name: str
    description: str
    created_at: datetime = Field(default_factory=datetime.now)


class Question(BaseModel):
    id: str = Field(default_factory=_new_id)
    concept_id: str
    text: str
    options: list[str]
    correct_index: int
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _correct_index_in_range(self) -> "Question":
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} outside "
                f"{len(self.options)} options"
            )
        return self

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]

    def is_correct(self, chosen_index: int) -> bool:
        return chosen_index == self.correct_index


class QuestionWithConcept(BaseModel):
    question: Question
    concept: Concept

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def concept_id(self) -> str:
        return self.concept.id


class QuizSession(BaseModel):
    id: str = Field(default_factory=_new_id)
    document_id: str
    user_id: str | None = None
    guest_session_id: str | None = None
    total_questions: int
    correct_answers: int = 0
    question_ids: list[str] = []
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_retest(self) -> bool:
        return bool(self.question_ids)

    @property
    def accuracy(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.correct_answers / self.total_questions


class AnswerRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    quiz_session_id: str
    question_id: str
    concept_id: str
    chosen_index: int
    is_correct: bool
    explanation: str | None = None
    answered_at: datetime = Field(default_factory=datetime.now)


# --- Aggregates (derived, never persisted) ---
class ConceptTally(BaseModel):
    concept_id: str
    total_questions: int
    incorrect_count: int

    def as_tuple(self) -> tuple[str, int, int]:
        return (self.concept_id, self.total_questions, self.incorrect_count)


class WeakConcept(BaseModel):
    concept: Concept
    total_questions: int
    incorrect_count: int

    @property
    def concept_id(self) -> str:
        return self.concept.id

    def as_tuple(self) -> tuple[str, int, int]:
        return (self.concept.id, self.total_questions, self.incorrect_count)


# --- LLM payloads ---
class GeneratedQuestion(BaseModel):
    question_text: str
    options: list[str]
    correct_answer: int

    @field_validator("options")
    @classmethod
    def _four_options(cls, options: list[str]) -> list[str]:
        if len(options) != AppConfig.OPTIONS_PER_QUESTION:
            raise ValueError(
                f"expected {AppConfig.OPTIONS_PER_QUESTION} options, "
                f"got {len(options)}"
            )
        return options

    @model_validator(mode="after")
    def _answer_in_range(self) -> "GeneratedQuestion":
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(f"correct_answer {self.correct_answer} out of range")
        return self

    def to_question(self, concept_id: str) -> Question:
        return Question(
            concept_id=concept_id,
            text=self.question_text,
            options=list(self.options),
            correct_index=self.correct_answer,
        )


class ExtractedConcept(BaseModel):
    concept_name: str
    concept_description: str


class ConceptWithQuestions(BaseModel):
    concept: ExtractedConcept
    questions: list[GeneratedQuestion] = []


# --- Read models ---
class UploadResult(BaseModel):
    document_id: str
    file_name: str
    concepts_count: int
    questions_count: int


class ReportEntry(BaseModel):
    answer: AnswerRecord
    question: Question
    concept: Concept


class SessionReport(BaseModel):
    session: QuizSession
    document: Document | None = None
    entries: list[ReportEntry] = []


class RecentSession(BaseModel):
    session: QuizSession
    document: Document | None = None


class DashboardSummary(BaseModel):
    total_quizzes: int = 0
    average_accuracy: float = 0.0
    streak: int = 0
    weak_concepts: list[WeakConcept] = []
    recent_sessions: list[RecentSession] = []


class QuizProgress(BaseModel):
    """
    Client-side state of a running quiz.
    """

    session_id: str | None = None
    current_q_index: int = 0
    score: int = 0
    answered_ids: list[str] = []
    wrong_concept_ids: list[str] = []
    is_complete: bool = False

    def record_answer(self, answer: AnswerRecord) -> None:
        if answer.question_id in self.answered_ids:
            return
        self.answered_ids.append(answer.question_id)
        if answer.is_correct:
            self.score += 1
        elif answer.concept_id not in self.wrong_concept_ids:
            self.wrong_concept_ids.append(answer.concept_id)

    def next_question(self) -> None:
        self.current_q_index += 1

    def reset(self, session_id: str | None = None) -> None:
        self.session_id = session_id
        self.current_q_index = 0
        self.score = 0
        self.answered_ids = []
        self.wrong_concept_ids = []
        self.is_complete = False

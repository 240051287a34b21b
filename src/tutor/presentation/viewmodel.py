from src.fsm import QuizAction, QuizState, QuizStateMachine
from src.shared.telemetry import Telemetry
from src.tutor.application.retest import RetestOrchestrator
from src.tutor.application.service import LearningService
from src.tutor.domain.errors import TutorError
from src.tutor.domain.models import (
    AnswerRecord,
    Learner,
    QuestionWithConcept,
    QuizProgress,
    SessionReport,
)
from src.tutor.presentation.state_provider import IStateProvider


class QuizViewModel:
    def __init__(
        self,
        service: LearningService,
        retest: RetestOrchestrator,
        state_provider: IStateProvider,
    ) -> None:
        self.service = service
        self.retest = retest
        self.state = state_provider
        self.telemetry = Telemetry("ViewModel")

        saved_fsm = self.state.get("fsm_state", QuizState.IDLE)
        self.fsm = QuizStateMachine(initial_state=saved_fsm)

        if self.state.get("quiz_progress") is None:
            self.state.set("quiz_progress", QuizProgress())

    # --- Properties ---
    @property
    def current_state(self) -> QuizState:
        return self.fsm.current_state

    @property
    def learner(self) -> Learner:
        return self.state.current_learner()

    @property
    def progress(self) -> QuizProgress:
        return self.state.get("quiz_progress")

    @property
    def questions(self) -> list[QuestionWithConcept]:
        return self.state.get("questions", [])

    @property
    def current_question(self) -> QuestionWithConcept | None:
        qs = self.questions
        idx = self.progress.current_q_index
        if qs and 0 <= idx < len(qs):
            return qs[idx]
        return None

    @property
    def last_answer(self) -> AnswerRecord | None:
        return self.state.get("last_answer")

    @property
    def error_message(self) -> str | None:
        return self.state.get("error_message")

    @property
    def is_last_question(self) -> bool:
        return self.progress.current_q_index >= len(self.questions) - 1

    # --- Actions (Traced) ---
    def start_quiz(self, document_id: str) -> None:
        Telemetry.start_trace()
        self.telemetry.log_info("Action: Start Quiz", document_id=document_id)
        self._begin_loading()

        try:
            session, questions = self.service.start_quiz(document_id, self.learner)
        except TutorError as e:
            self._fail_loading(e)
            return

        self._finish_loading(session.id, questions)

    def start_retest(self, concept_ids: list[str]) -> None:
        Telemetry.start_trace()
        self.telemetry.log_info("Action: Start Retest", concepts=len(concept_ids))
        self._begin_loading()

        try:
            result = self.retest.create_retest(self.learner, concept_ids)
        except (TutorError, ValueError) as e:
            self._fail_loading(e)
            return

        if result.skipped_concept_ids:
            self.state.set("skipped_concepts", result.skipped_concept_ids)
        self._finish_loading(result.session.id, result.questions)

    def submit_answer(self, chosen_index: int) -> None:
        Telemetry.start_trace()
        item = self.current_question
        session_id = self.progress.session_id

        if item is None or session_id is None:
            self.telemetry.log_error("Submit failed", Exception("No active question"))
            return

        answer = self.service.submit_answer(
            session_id, item.id, chosen_index, concept_id=item.concept_id
        )
        self.progress.record_answer(answer)
        self.state.set("last_answer", answer)

        self.fsm.transition(QuizAction.SUBMIT_ANSWER)
        self._persist_fsm()

    def next_step(self) -> None:
        Telemetry.start_trace()

        if self.is_last_question:
            self._finish_quiz()
        else:
            self.progress.next_question()
            self.state.set("last_answer", None)
            self.fsm.transition(QuizAction.NEXT_QUESTION)

        self._persist_fsm()

    def report(self) -> SessionReport | None:
        session_id = self.progress.session_id
        if session_id is None:
            return None
        return self.service.get_session_report(session_id)

    def reset(self) -> None:
        Telemetry.start_trace()
        self.fsm.transition(QuizAction.RESET)
        self.progress.reset()
        self.state.set("questions", [])
        self.state.set("last_answer", None)
        self.state.set("error_message", None)
        self.state.set("skipped_concepts", [])
        self._persist_fsm()

    # --- Internals ---
    def _begin_loading(self) -> None:
        if self.current_state != QuizState.IDLE:
            self.fsm.transition(QuizAction.RESET)
        self.state.set("error_message", None)
        self.state.set("skipped_concepts", [])
        self.fsm.transition(QuizAction.START)

    def _finish_loading(
        self, session_id: str, questions: list[QuestionWithConcept]
    ) -> None:
        self.state.set("questions", questions)
        self.state.set("last_answer", None)
        self.progress.reset(session_id=session_id)

        if questions:
            self.fsm.transition(QuizAction.LOAD_SUCCESS)
        else:
            self.fsm.transition(QuizAction.LOAD_EMPTY)
        self._persist_fsm()

    def _fail_loading(self, error: Exception) -> None:
        self.telemetry.log_error("Quiz loading failed", error)
        self.state.set("error_message", str(error))
        self.fsm.transition(QuizAction.LOAD_FAILED)
        self._persist_fsm()

    def _finish_quiz(self) -> None:
        progress = self.progress
        if progress.session_id is not None:
            self.service.complete_session(progress.session_id, progress.score)
        progress.is_complete = True
        self.fsm.transition(QuizAction.FINISH_QUIZ)

    def _persist_fsm(self) -> None:
        self.state.set("fsm_state", self.fsm.current_state)

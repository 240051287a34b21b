import logging
from enum import Enum, auto

logger = logging.getLogger(__name__)


class QuizState(Enum):
    IDLE = auto()  # No quiz running, learner picks a document or retest
    LOADING = auto()  # Prioritizing or generating questions
    QUESTION_ACTIVE = auto()  # Displaying a question, waiting for input
    FEEDBACK_VIEW = auto()  # Answer submitted, showing tutor explanation
    SUMMARY = auto()  # Quiz finished, score recorded
    EMPTY_STATE = auto()  # Document has no questions
    ERROR = auto()  # Loading failed (e.g. every retest generation failed)


class QuizAction(Enum):
    START = auto()
    LOAD_SUCCESS = auto()
    LOAD_EMPTY = auto()
    LOAD_FAILED = auto()
    SUBMIT_ANSWER = auto()
    NEXT_QUESTION = auto()
    FINISH_QUIZ = auto()
    RESET = auto()


class QuizStateMachine:
    """
    Pure FSM Logic.
    It only cares about state transitions, not UI or DB.
    """

    def __init__(self, initial_state: QuizState = QuizState.IDLE) -> None:
        self._state = initial_state

    @property
    def current_state(self) -> QuizState:
        return self._state

    def transition(self, action: QuizAction) -> bool:
        """
        Applies the transition table. Returns False for a rejected action.
        """
        previous = self._state

        match (self._state, action):
            case (QuizState.IDLE, QuizAction.START):
                self._state = QuizState.LOADING

            case (QuizState.LOADING, QuizAction.LOAD_SUCCESS):
                self._state = QuizState.QUESTION_ACTIVE
            case (QuizState.LOADING, QuizAction.LOAD_EMPTY):
                self._state = QuizState.EMPTY_STATE
            case (QuizState.LOADING, QuizAction.LOAD_FAILED):
                self._state = QuizState.ERROR

            case (QuizState.QUESTION_ACTIVE, QuizAction.SUBMIT_ANSWER):
                self._state = QuizState.FEEDBACK_VIEW

            case (QuizState.FEEDBACK_VIEW, QuizAction.NEXT_QUESTION):
                self._state = QuizState.QUESTION_ACTIVE
            case (QuizState.FEEDBACK_VIEW, QuizAction.FINISH_QUIZ):
                self._state = QuizState.SUMMARY

            case (_, QuizAction.RESET):
                self._state = QuizState.IDLE

            case _:
                logger.error(f"⛔ INVALID TRANSITION: {self._state.name} + {action.name}")
                return False

        logger.info(f"🔄 FSM: {previous.name} --[{action.name}]--> {self._state.name}")
        return True

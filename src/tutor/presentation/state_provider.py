import uuid
from abc import ABC, abstractmethod
from typing import Any

import streamlit as st

from src.tutor.domain.models import Learner

GUEST_KEY = "guest_session_id"
USER_KEY = "user_id"


class IStateProvider(ABC):
    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def current_learner(self) -> Learner:
        """
        The signed-in user when a name was entered, otherwise this browser
        session's guest identity (created on first use).
        """
        user_id = (self.get(USER_KEY) or "").strip()
        if user_id:
            return Learner.authenticated(user_id)

        guest_id = self.get(GUEST_KEY)
        if not guest_id:
            guest_id = f"guest-{uuid.uuid4()}"
            self.set(GUEST_KEY, guest_id)
        return Learner.guest(guest_id)


class StreamlitStateProvider(IStateProvider):
    def get(self, key: str, default: Any = None) -> Any:
        return st.session_state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        st.session_state[key] = value

    def clear(self) -> None:
        st.session_state.clear()


class DictStateProvider(IStateProvider):
    """In-process state, used outside a Streamlit script run."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

import streamlit as st

from src.tutor.domain.models import Learner, OptionKey

SCREENS = {
    "upload": "📄 Documents",
    "quiz": "📝 Quiz",
    "dashboard": "📊 Dashboard",
    "learn": "🧑‍🏫 Learn",
}


def apply_styles() -> None:
    st.markdown(
        """
        <style>
            .block-container { padding-top: 2rem !important; }
            .stat-box { padding: 10px; background-color: #f0f2f6; border-radius: 5px; text-align: center; font-weight: bold; }
            .question-text { font-size: 1.2rem; font-weight: 600; margin-bottom: 1rem; }
            .concept-tag { color: #6b7280; font-size: 0.85rem; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_sidebar(current_user: str, current_screen: str, learner: Learner) -> tuple[str, str]:
    st.sidebar.header("⚙️ Settings")

    user_id = st.sidebar.text_input(
        "Name (leave empty to continue as guest)", value=current_user
    )
    labels = list(SCREENS.values())
    keys = list(SCREENS.keys())
    index = keys.index(current_screen) if current_screen in keys else 0
    choice = st.sidebar.radio("Go to", labels, index=index)

    with st.sidebar.expander("🕵️‍♂️ Session"):
        st.caption(("Guest: " if learner.is_guest else "User: ") + learner.key)

    return user_id, keys[labels.index(choice)]


def option_label(index: int, text: str) -> str:
    return f"{OptionKey.from_index(index).value}. {text}"


def render_progress(current: int, total: int, concept_name: str) -> None:
    col1, col2 = st.columns(2)
    col1.markdown(
        f'<div class="stat-box">Question {current}/{total}</div>',
        unsafe_allow_html=True,
    )
    col2.markdown(
        f'<div class="stat-box">🧩 {concept_name}</div>', unsafe_allow_html=True
    )
    st.progress(current / total if total else 1.0)

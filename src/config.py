import os
from typing import Final


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class AppConfig:
    # --- Infrastructure Switch ---
    USE_SQLITE: bool = _env_flag("USE_SQLITE", True)
    DB_PATH: str = os.getenv("TUTOR_DB_PATH", "data/tutor.db")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # --- App Identity ---
    APP_TITLE = "Concept Tutor"
    SERVICE_NAME = "concept-tutor-app"
    METRICS_PORT: int = int(os.getenv("METRICS_PORT", "8000"))

    # --- Gemini ---
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    EXTRACTION_TEMPERATURE = 0.3

    # --- Documents ---
    SUPPORTED_EXTENSIONS: Final[tuple[str, ...]] = ("pdf", "docx")
    MIN_DOCUMENT_CHARS: Final[int] = 100
    CONTEXT_EXCERPT_CHARS: Final[int] = 2000
    DEMO_SEED_FILE = "data/demo_document.json"

    # --- Quiz Rules ---
    OPTIONS_PER_QUESTION: Final[int] = 4
    MIN_CONCEPTS = 3
    MAX_CONCEPTS = 7
    QUESTIONS_PER_CONCEPT = 3
    PASSING_RATIO = 0.7

    # --- Retest ---
    RETEST_MAX_WORKERS = 4

    # --- Dashboard ---
    RECENT_SESSIONS_LIMIT = 5

    @staticmethod
    def is_supported_file(file_name: str) -> bool:
        return AppConfig.file_extension(file_name) in AppConfig.SUPPORTED_EXTENSIONS

    @staticmethod
    def file_extension(file_name: str) -> str:
        """Lower-case extension without the dot, '' when there is none."""
        if "." not in file_name:
            return ""
        return file_name.rsplit(".", 1)[-1].lower()

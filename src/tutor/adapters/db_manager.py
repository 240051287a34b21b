import os
import sqlite3
from typing import Any

from src.shared.telemetry import Telemetry, measure_time

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS documents
    (
        id               TEXT PRIMARY KEY,
        user_id          TEXT,
        guest_session_id TEXT,
        file_name        TEXT    NOT NULL,
        file_size        INTEGER NOT NULL,
        extracted_text   TEXT    NOT NULL,
        uploaded_at      TEXT    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS concepts
    (
        id          TEXT PRIMARY KEY,
        document_id TEXT NOT NULL,
        name        TEXT NOT NULL,
        description TEXT NOT NULL,
        created_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS questions
    (
        id            TEXT PRIMARY KEY,
        concept_id    TEXT    NOT NULL,
        question_text TEXT    NOT NULL,
        options_json  TEXT    NOT NULL,
        correct_index INTEGER NOT NULL,
        created_at    TEXT    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quiz_sessions
    (
        id                TEXT PRIMARY KEY,
        document_id       TEXT    NOT NULL,
        user_id           TEXT,
        guest_session_id  TEXT,
        total_questions   INTEGER NOT NULL,
        correct_answers   INTEGER NOT NULL DEFAULT 0,
        question_ids_json TEXT    NOT NULL DEFAULT '[]',
        completed_at      TEXT,
        created_at        TEXT    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS answers
    (
        id              TEXT PRIMARY KEY,
        quiz_session_id TEXT    NOT NULL,
        question_id     TEXT    NOT NULL,
        concept_id      TEXT    NOT NULL,
        chosen_index    INTEGER NOT NULL,
        is_correct      BOOLEAN NOT NULL,
        explanation     TEXT,
        answered_at     TEXT    NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_concepts_document ON concepts (document_id)",
    "CREATE INDEX IF NOT EXISTS idx_questions_concept ON questions (concept_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON quiz_sessions (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_guest ON quiz_sessions (guest_session_id)",
    "CREATE INDEX IF NOT EXISTS idx_answers_session ON answers (quiz_session_id)",
)


class DatabaseManager:
    """
    Responsible for:
    1. Managing the SQLite connection lifecycle.
    2. Initializing the database schema (DDL).
    3. Ensuring pickle-safety for Streamlit Session State.
    """

    def __init__(self, db_path: str = "data/tutor.db") -> None:
        self.db_path = db_path
        self.telemetry = Telemetry("DatabaseManager")
        self._shared_connection: sqlite3.Connection | None = None

        self._ensure_db_exists()

        # In-memory databases vanish with their connection
        if self.db_path == ":memory:":
            self._shared_connection = sqlite3.connect(
                ":memory:", check_same_thread=False
            )

        self._init_schema()

    # --- SERIALIZATION LOGIC (Pickle Safety) ---
    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state.pop("_shared_connection", None)
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        # The connection is lazily re-created by get_connection().
        # Data of a ":memory:" database does not survive this.
        self.__dict__.update(state)
        self._shared_connection = None

    def get_connection(self) -> sqlite3.Connection:
        """Returns a usable database connection, reconnecting if necessary."""
        if self._shared_connection:
            try:
                self._shared_connection.execute("SELECT 1")
                return self._shared_connection
            except sqlite3.ProgrammingError:
                # Connection was closed externally
                self._shared_connection = None

        conn = sqlite3.connect(self.db_path, check_same_thread=False)

        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")

        self._shared_connection = conn
        return conn

    def close(self) -> None:
        if self._shared_connection:
            self._shared_connection.close()
            self._shared_connection = None

    def _ensure_db_exists(self) -> None:
        if self.db_path == ":memory:":
            return
        dir_name = os.path.dirname(self.db_path)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)

    @measure_time("db_init_schema")
    def _init_schema(self) -> None:
        conn = self.get_connection()
        try:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema Init Failed", e)
            raise

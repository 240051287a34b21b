import logging
import os

import streamlit as st

# --- OTel & Observability Imports ---
from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import start_http_server

# --- Application Imports ---
from src.config import AppConfig
from src.tutor.adapters.db_manager import DatabaseManager
from src.tutor.adapters.document_text import DocumentTextExtractor
from src.tutor.adapters.gemini_generator import GeminiContentGenerator
from src.tutor.adapters.seeder import DataSeeder
from src.tutor.adapters.sqlite_repository import SQLiteLearningRepository
from src.tutor.adapters.supabase_repository import SupabaseLearningRepository
from src.tutor.application.retest import RetestOrchestrator
from src.tutor.application.service import LearningService
from src.tutor.domain.ports import ILearningRepository
from src.tutor.presentation.state_provider import USER_KEY, StreamlitStateProvider
from src.tutor.presentation.viewmodel import QuizViewModel
from src.tutor.presentation.views import (
    components,
    dashboard_view,
    learn_view,
    quiz_view,
    upload_view,
)


# --- 1. Configure Observability ---
def configure_observability() -> None:
    """
    Sends traces and logs over OTLP when the exporter is configured, and
    starts a background Prometheus server for metrics.
    """
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")

    if endpoint and headers:
        resource = Resource.create({"service.name": AppConfig.SERVICE_NAME})

        # --- A. TRACING ---
        trace_provider = TracerProvider(resource=resource)
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
        )
        trace.set_tracer_provider(trace_provider)

        # --- B. LOGGING ---
        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, headers=headers))
        )
        set_logger_provider(logger_provider)
        logging.getLogger().addHandler(
            LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
        )
    else:
        logging.getLogger(__name__).warning(
            "OTEL env vars not set. Telemetry will not be sent to the collector."
        )

    # --- C. METRICS ---
    try:
        start_http_server(AppConfig.METRICS_PORT)
        logging.getLogger(__name__).info(
            "Prometheus metrics server started on port %s", AppConfig.METRICS_PORT
        )
    except OSError:
        logging.getLogger(__name__).warning(
            "Prometheus port %s already in use (likely Streamlit reload). Skipping.",
            AppConfig.METRICS_PORT,
        )


if "observability_configured" not in st.session_state:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s"
    )
    configure_observability()
    st.session_state.observability_configured = True


# --- 2. Dependency Injection (Composition Root) ---
def build_repository() -> ILearningRepository:
    if AppConfig.USE_SQLITE:
        return SQLiteLearningRepository(DatabaseManager(AppConfig.DB_PATH))
    return SupabaseLearningRepository(AppConfig.SUPABASE_URL, AppConfig.SUPABASE_KEY)


@st.cache_resource
def get_services() -> tuple[LearningService, RetestOrchestrator, DataSeeder]:
    repo = build_repository()
    generator = GeminiContentGenerator()
    service = LearningService(repo, generator, DocumentTextExtractor())
    return service, RetestOrchestrator(repo, generator), DataSeeder(repo)


def main() -> None:
    st.set_page_config(page_title=AppConfig.APP_TITLE, layout="centered")
    components.apply_styles()

    service, retest, seeder = get_services()
    state_provider = StreamlitStateProvider()
    vm = QuizViewModel(service, retest, state_provider)

    # --- 3. Sidebar & Learner Identity ---
    current_user = state_provider.get(USER_KEY, "")
    current_screen = state_provider.get("screen", "upload")
    sel_user, sel_screen = components.render_sidebar(
        current_user, current_screen, vm.learner
    )

    if sel_user.strip() != current_user:
        state_provider.set(USER_KEY, sel_user.strip())
        vm.reset()
        st.rerun()
    if sel_screen != current_screen:
        state_provider.set("screen", sel_screen)
        st.rerun()

    seeded_key = f"seeded_{vm.learner.key}"
    if not state_provider.get(seeded_key):
        seeder.seed_if_empty(vm.learner)
        state_provider.set(seeded_key, True)

    # --- 4. Screen Router ---
    if current_screen == "quiz":
        quiz_view.render(vm)
    elif current_screen == "dashboard":
        dashboard_view.render(service, vm)
    elif current_screen == "learn":
        learn_view.render(service)
    else:
        upload_view.render(service, vm)


if __name__ == "__main__":
    main()

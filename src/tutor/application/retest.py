from concurrent.futures import ThreadPoolExecutor

from pydantic import BaseModel

from src.config import AppConfig
from src.shared.telemetry import Telemetry, measure_time, record_generation_failure
from src.tutor.domain.errors import LearnerRequiredError, RetestGenerationError
from src.tutor.domain.models import (
    Concept,
    Document,
    GeneratedQuestion,
    Learner,
    QuestionWithConcept,
    QuizSession,
)
from src.tutor.domain.ports import IContentGenerator, ILearningRepository


class RetestResult(BaseModel):
    session: QuizSession
    questions: list[QuestionWithConcept]
    skipped_concept_ids: list[str] = []


class RetestOrchestrator:
    """
    Builds one bounded quiz session from freshly generated questions for a
    learner-selected set of weak concepts.
    """

    def __init__(
        self,
        repo: ILearningRepository,
        generator: IContentGenerator,
        max_workers: int = AppConfig.RETEST_MAX_WORKERS,
    ) -> None:
        self.repo = repo
        self.generator = generator
        self.max_workers = max_workers
        self.telemetry = Telemetry("RetestOrchestrator")

    def _load_targets(self, concept_ids: list[str]) -> list[tuple[Concept, Document]]:
        concepts = self.repo.get_concepts_by_ids(concept_ids)
        documents: dict[str, Document | None] = {}
        targets = []

        for concept_id in concept_ids:
            concept = concepts.get(concept_id)
            if concept is None:
                self.telemetry.log_warning("Retest skips unknown concept", id=concept_id)
                continue

            if concept.document_id not in documents:
                documents[concept.document_id] = self.repo.get_document(
                    concept.document_id
                )
            document = documents[concept.document_id]
            if document is None:
                self.telemetry.log_warning(
                    "Retest skips concept without document", id=concept_id
                )
                continue

            targets.append((concept, document))
        return targets

    def _generate(self, concept: Concept, document: Document) -> list[GeneratedQuestion]:
        """Never raises: a failed concept yields no questions."""
        try:
            return self.generator.generate_concept_questions(
                concept.name,
                concept.description,
                document.extracted_text[: AppConfig.CONTEXT_EXCERPT_CHARS],
            )
        except Exception as e:
            record_generation_failure("retest")
            self.telemetry.log_error(
                "Retest generation failed", e, concept_id=concept.id
            )
            return []

    @measure_time("create_retest")
    def create_retest(
        self, learner: Learner | None, concept_ids: list[str]
    ) -> RetestResult:
        if learner is None:
            raise LearnerRequiredError()

        unique_ids = list(dict.fromkeys(concept_ids))
        if not unique_ids:
            raise ValueError("Concept IDs required")

        targets = self._load_targets(unique_ids)

        # All generation calls resolve before anything is persisted
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            generated = list(pool.map(lambda t: self._generate(*t), targets))

        stored: list[QuestionWithConcept] = []
        for (concept, _), questions in zip(targets, generated):
            if not questions:
                continue
            new_questions = [q.to_question(concept.id) for q in questions]
            self.repo.save_questions(new_questions)
            stored.extend(
                QuestionWithConcept(question=q, concept=concept) for q in new_questions
            )

        if not stored:
            self.telemetry.log_warning("Retest produced no questions", ids=unique_ids)
            raise RetestGenerationError(unique_ids)

        session = QuizSession(
            document_id=stored[0].concept.document_id,
            user_id=learner.user_id,
            guest_session_id=learner.guest_session_id,
            total_questions=len(stored),
            question_ids=[item.id for item in stored],
        )
        self.repo.save_quiz_session(session)

        succeeded = {item.concept_id for item in stored}
        skipped = [c_id for c_id in unique_ids if c_id not in succeeded]
        self.telemetry.log_info(
            "Retest session created",
            session_id=session.id,
            questions=len(stored),
            skipped=skipped,
        )
        return RetestResult(session=session, questions=stored, skipped_concept_ids=skipped)

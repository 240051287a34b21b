import json
import os

from pydantic import BaseModel

from src.config import AppConfig
from src.shared.telemetry import Telemetry
from src.tutor.domain.models import Concept, ConceptWithQuestions, Document, Learner
from src.tutor.domain.ports import ILearningRepository

# --- Demo Seeding ---
# Every new learner gets a private copy of the demo document, so weak-concept
# history never leaks between learners through shared concept ids.
# -----------------------------------------------------------------------------


class DemoDocument(BaseModel):
    file_name: str
    text: str
    concepts: list[ConceptWithQuestions]


class DataSeeder:
    """
    Populates a learner's library with a demo document and its questions.
    """

    def __init__(self, repo: ILearningRepository) -> None:
        self.repo = repo
        self.telemetry = Telemetry("DataSeeder")

    def load(self, seed_file: str) -> DemoDocument | None:
        if not os.path.exists(seed_file):
            self.telemetry.log_warning("Seed file NOT found", path=seed_file)
            return None
        with open(seed_file, encoding="utf-8") as f:
            return DemoDocument.model_validate(json.load(f))

    def seed_if_empty(
        self, learner: Learner, seed_file: str = AppConfig.DEMO_SEED_FILE
    ) -> Document | None:
        """
        Seeds the demo document when the learner has no documents yet.
        Returns the new document, or None when nothing was seeded.
        """
        if self.repo.list_documents(learner):
            return None

        demo = self.load(seed_file)
        if demo is None:
            return None

        document = Document(
            user_id=learner.user_id,
            guest_session_id=learner.guest_session_id,
            file_name=demo.file_name,
            file_size=len(demo.text.encode("utf-8")),
            extracted_text=demo.text,
        )
        self.repo.save_document(document)

        total = 0
        for item in demo.concepts:
            concept = Concept(
                document_id=document.id,
                name=item.concept.concept_name,
                description=item.concept.concept_description,
            )
            self.repo.save_concept(concept)
            questions = [q.to_question(concept.id) for q in item.questions]
            self.repo.save_questions(questions)
            total += len(questions)

        self.telemetry.log_info(
            "Seeded demo document",
            learner=learner.key,
            concepts=len(demo.concepts),
            questions=total,
        )
        return document

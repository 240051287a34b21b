class TutorError(Exception):
    """Base class for errors the UI reports to the learner."""


class LearnerRequiredError(TutorError):
    def __init__(self) -> None:
        super().__init__("User or guest session required")


class NotFoundError(TutorError):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class UnsupportedDocumentError(TutorError):
    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Unsupported file type for '{file_name}'. "
            "Please upload PDF or DOCX files."
        )
        self.file_name = file_name


class UnreadableDocumentError(TutorError):
    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Could not read '{file_name}'. The file may be corrupt or mislabelled."
        )
        self.file_name = file_name


class DocumentTooShortError(TutorError):
    def __init__(self, length: int) -> None:
        super().__init__(f"Document text too short or empty ({length} chars)")
        self.length = length


class GenerationError(TutorError):
    """The content generator could not produce a usable result."""


class RetestGenerationError(GenerationError):
    def __init__(self, concept_ids: list[str]) -> None:
        super().__init__("Failed to generate any questions")
        self.concept_ids = concept_ids


class SessionAlreadyCompletedError(TutorError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Quiz session already completed: {session_id}")
        self.session_id = session_id

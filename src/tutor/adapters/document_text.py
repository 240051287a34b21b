import io

from docx import Document as DocxDocument
from PyPDF2 import PdfReader

from src.config import AppConfig
from src.shared.telemetry import Telemetry, measure_time
from src.tutor.domain.errors import UnreadableDocumentError, UnsupportedDocumentError
from src.tutor.domain.ports import IDocumentTextExtractor


class DocumentTextExtractor(IDocumentTextExtractor):
    """Plain text out of uploaded PDF and DOCX bytes."""

    def __init__(self) -> None:
        self.telemetry = Telemetry("DocumentTextExtractor")

    @measure_time("extract_document_text")
    def extract_text(self, file_name: str, data: bytes) -> str:
        extension = AppConfig.file_extension(file_name)
        self.telemetry.log_info(
            "Processing document", file_name=file_name, kind=extension, size=len(data)
        )

        if extension == "pdf":
            reader = self._pdf_text
        elif extension == "docx":
            reader = self._docx_text
        else:
            raise UnsupportedDocumentError(file_name)

        try:
            text = reader(data)
        except Exception as e:
            self.telemetry.log_error("Document parsing failed", e, file_name=file_name)
            raise UnreadableDocumentError(file_name) from e

        self.telemetry.log_info("Extracted text", file_name=file_name, chars=len(text))
        return text

    @staticmethod
    def _pdf_text(data: bytes) -> str:
        reader = PdfReader(io.BytesIO(data))
        return "\n".join(page.extract_text() or "" for page in reader.pages)

    @staticmethod
    def _docx_text(data: bytes) -> str:
        doc = DocxDocument(io.BytesIO(data))
        return "\n".join(paragraph.text for paragraph in doc.paragraphs)

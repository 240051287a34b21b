import pytest

from src.config import AppConfig


class TestFileTypes:
    @pytest.mark.parametrize("name", ["notes.pdf", "NOTES.PDF", "a.b.docx"])
    def test_supported_files(self, name):
        assert AppConfig.is_supported_file(name)

    @pytest.mark.parametrize("name", ["notes.txt", "pdf", "notes.doc", ""])
    def test_unsupported_files(self, name):
        assert not AppConfig.is_supported_file(name)

    def test_file_extension(self):
        assert AppConfig.file_extension("Report.Final.DOCX") == "docx"
        assert AppConfig.file_extension("README") == ""


def test_quiz_rules_are_consistent():
    """Generated questions always have four options and a sane concept range."""
    assert AppConfig.OPTIONS_PER_QUESTION == 4
    assert 0 < AppConfig.MIN_CONCEPTS <= AppConfig.MAX_CONCEPTS
    assert AppConfig.MIN_DOCUMENT_CHARS == 100
    assert AppConfig.RETEST_MAX_WORKERS >= 1

"""Pytest configuration and fixtures."""
import asyncio
import io

import pytest
from docx import Document as DocxDocument

from docquiz.exceptions import GenerationFailedError
from docquiz.models.session import Document
from docquiz.services.conversation import ConversationController
from docquiz.services.extractor import TXT
from docquiz.services.presenter import IncrementalPresenter


PARIS_TEXT = "Paris is the capital of France."
PARIS_REPLY = "Q1: What is the capital of France?\nA1: Paris\n\n"


class FakeGenerator:
    """Records prompts and returns canned replies or raises."""

    def __init__(self, reply: str = PARIS_REPLY, error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class BlockingGenerator(FakeGenerator):
    """Holds every call until ``release`` is set."""

    def __init__(self, reply: str = PARIS_REPLY):
        super().__init__(reply)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.started.set()
        await self.release.wait()
        return self.reply


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def failing_generator():
    return FakeGenerator(error=GenerationFailedError("Failed to generate a response."))


@pytest.fixture
def controller(fake_generator):
    return ConversationController(fake_generator, presenter=IncrementalPresenter(), session_id="test-session")


@pytest.fixture
def text_document():
    return Document(content=PARIS_TEXT.encode("utf-8"), media_type=TXT, filename="paris.txt")


@pytest.fixture
def docx_bytes():
    """A small DOCX with two paragraphs and a one-cell table."""
    doc = DocxDocument()
    doc.add_paragraph("Paris is the capital")
    doc.add_paragraph("of France.")
    table = doc.add_table(rows=1, cols=1)
    table.cell(0, 0).text = "Population: 2.1 million"
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_pdf_content():
    """Bytes that are not a parseable PDF."""
    return b"%PDF-1.4\nthis is not really a pdf"

"""Tests for service modules."""
import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, Mock, patch, PropertyMock

import pytest
from docx import Document as DocxDocument

from docquiz.exceptions import (
    EmptyDocumentError,
    ExtractionFailedError,
    GenerationFailedError,
    MissingCredentialError,
    MissingInputError,
    NoQuizContextError,
    SessionNotFoundError,
    UnsupportedMediaTypeError,
)
from docquiz.models.session import Document, Quiz, Role, Transcript
from docquiz.services.exporter import export_quiz_docx
from docquiz.services.extractor import DOCX, PDF, TXT, extract_text, resolve_media_type
from docquiz.services.generation_client import GenerationClient, GenerationConfig
from docquiz.services.presenter import IncrementalPresenter
from docquiz.services.prompts import FollowUpPrompt, QuizPrompt
from docquiz.services.segmenter import segment
from docquiz.services.session_store import SessionStore

from conftest import PARIS_REPLY, PARIS_TEXT, FakeGenerator


class TestExtractor:
    """Tests for text extraction."""

    def test_plain_text_tokens_joined_by_single_space(self):
        document = Document(content=b"Paris  is\nthe capital\tof France.", media_type=TXT)
        assert extract_text(document) == PARIS_TEXT

    def test_docx_paragraphs_and_tables(self, docx_bytes):
        document = Document(content=docx_bytes, media_type=DOCX, filename="paris.docx")
        assert extract_text(document) == "Paris is the capital of France. Population: 2.1 million"

    def test_docx_table_between_paragraphs(self):
        """A table keeps its place between the paragraphs around it."""
        doc = DocxDocument()
        doc.add_paragraph("Before the table.")
        table = doc.add_table(rows=1, cols=2)
        table.cell(0, 0).text = "Left"
        table.cell(0, 1).text = "Right"
        doc.add_paragraph("After the table.")
        buffer = io.BytesIO()
        doc.save(buffer)

        document = Document(content=buffer.getvalue(), media_type=DOCX)

        assert extract_text(document) == "Before the table. Left Right After the table."

    def test_invalid_utf8_txt(self):
        document = Document(content=b"\xff\xfe not utf-8 \xc3", media_type=TXT)

        with pytest.raises(ExtractionFailedError):
            extract_text(document)

    def test_utf8_bom_is_not_a_token(self):
        document = Document(content="\ufeffParis".encode("utf-8"), media_type=TXT)
        assert extract_text(document) == "Paris"

    def test_pdf_words_in_page_order(self):
        """Words from every page are kept in encounter order."""
        page_one = Mock()
        page_one.extract_words.return_value = [{"text": "Paris"}, {"text": "is"}]
        page_two = Mock()
        page_two.extract_words.return_value = [{"text": "the"}, {"text": "capital."}]
        pdf = MagicMock()
        pdf.__enter__.return_value.pages = [page_one, page_two]

        with patch("docquiz.services.extractor.pdfplumber.open", return_value=pdf):
            text = extract_text(Document(content=b"%PDF-1.4", media_type=PDF))

        assert text == "Paris is the capital."

    def test_corrupted_pdf_raises_extraction_failed(self, sample_pdf_content):
        with pytest.raises(ExtractionFailedError):
            extract_text(Document(content=sample_pdf_content, media_type=PDF))

    def test_parser_error_mid_stream_is_not_swallowed(self):
        page = Mock()
        page.extract_words.side_effect = RuntimeError("broken content stream")
        pdf = MagicMock()
        pdf.__enter__.return_value.pages = [page]

        with patch("docquiz.services.extractor.pdfplumber.open", return_value=pdf):
            with pytest.raises(ExtractionFailedError, match="broken content stream"):
                extract_text(Document(content=b"%PDF-1.4", media_type=PDF))

    def test_empty_bytes_raise_empty_document(self):
        with pytest.raises(EmptyDocumentError):
            extract_text(Document(content=b"", media_type=PDF))

    def test_whitespace_only_text_raises_empty_document(self):
        with pytest.raises(EmptyDocumentError):
            extract_text(Document(content=b"   \n\t  ", media_type=TXT))

    def test_unsupported_media_type(self):
        with pytest.raises(UnsupportedMediaTypeError):
            extract_text(Document(content=b"GIF89a", media_type="image/gif", filename="x.gif"))

    def test_media_type_parameters_and_extension_fallback(self):
        assert resolve_media_type("text/plain; charset=utf-8") == TXT
        assert resolve_media_type("application/octet-stream", "notes.PDF") == PDF


class TestPrompts:
    """Tests for prompt building."""

    def test_generation_prompt_contains_text(self):
        prompt = QuizPrompt.build(PARIS_TEXT)
        assert PARIS_TEXT in prompt
        assert prompt.startswith("Generate a quiz")

    def test_follow_up_prompt_contains_quiz_and_question(self):
        quiz = segment(PARIS_REPLY)
        prompt = FollowUpPrompt.build(quiz, "Why Paris?")
        assert quiz.to_text() in prompt
        assert "Why Paris?" in prompt

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_generation_prompt_rejects_empty_text(self, text):
        with pytest.raises(MissingInputError):
            QuizPrompt.build(text)

    def test_follow_up_prompt_rejects_empty_inputs(self):
        with pytest.raises(MissingInputError):
            FollowUpPrompt.build(Quiz(), "Why Paris?")
        with pytest.raises(MissingInputError):
            FollowUpPrompt.build(segment(PARIS_REPLY), "  ")


class TestSegmenter:
    """Tests for response segmentation."""

    def test_paris_scenario(self):
        assert list(segment(PARIS_REPLY)) == ["Q1: What is the capital of France?", "A1: Paris"]

    def test_blank_lines_removed_and_order_kept(self):
        quiz = segment("\n  \nfirst\r\n\t\nsecond\nthird\n")
        assert list(quiz) == ["first", "second", "third"]
        assert all(line.strip() for line in quiz)

    def test_empty_input_is_empty_quiz(self):
        assert segment("").is_empty
        assert segment("\n\n  \n").is_empty


class TestGenerationClient:
    """Tests for GenerationClient."""

    def _client(self, create):
        sdk = Mock()
        sdk.chat.completions.create = create
        return GenerationClient(api_key="test-key", client=sdk, timeout_seconds=1.0)

    def test_missing_api_key(self):
        with pytest.raises(MissingCredentialError):
            GenerationClient(api_key="")

    @pytest.mark.asyncio
    async def test_generate_sends_single_turn_with_sampling_config(self):
        response = Mock()
        response.choices = [Mock(message=Mock(content="Q1: ?"))]
        create = AsyncMock(return_value=response)
        client = self._client(create)

        reply = await client.generate("prompt text")

        assert reply == "Q1: ?"
        kwargs = create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "prompt text"}]
        assert kwargs["temperature"] == 0.7
        assert kwargs["top_p"] == 0.95
        assert kwargs["max_tokens"] == 65536
        assert kwargs["extra_body"] == {"top_k": 64}

    @pytest.mark.asyncio
    async def test_each_call_is_independent(self):
        response = Mock()
        response.choices = [Mock(message=Mock(content="ok"))]
        create = AsyncMock(return_value=response)
        client = self._client(create)

        await client.generate("first")
        await client.generate("second")

        assert create.call_args.kwargs["messages"] == [{"role": "user", "content": "second"}]

    @pytest.mark.asyncio
    async def test_oracle_error_becomes_generation_failed(self):
        client = self._client(AsyncMock(side_effect=RuntimeError("quota exceeded")))

        with pytest.raises(GenerationFailedError) as exc_info:
            await client.generate("prompt")

        assert "quota" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_becomes_generation_failed(self):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        client = self._client(hang)
        client.timeout_seconds = 0.01

        with pytest.raises(GenerationFailedError):
            await client.generate("prompt")

    def test_top_k_omitted_when_unset(self):
        sdk = Mock()
        client = GenerationClient(api_key="k", client=sdk, config=GenerationConfig(top_k=None))
        assert "extra_body" not in client._request_kwargs("p")


class TestPresenter:
    """Tests for the incremental presenter."""

    @pytest.mark.asyncio
    async def test_first_character_written_immediately(self):
        transcript = Transcript()
        presenter = IncrementalPresenter()

        presenter.start(transcript, "Hello")

        assert len(transcript) == 1
        assert transcript.last.role == Role.ASSISTANT
        assert transcript.last.text == "H"
        assert presenter.in_progress

    @pytest.mark.asyncio
    async def test_one_character_per_tick_until_complete(self):
        transcript = Transcript()
        reveal = IncrementalPresenter().start(transcript, "abc")

        seen = [transcript.last.text]
        while not reveal.done:
            await asyncio.sleep(0)
            seen.append(transcript.last.text)

        assert transcript.last.text == "abc"
        assert [s for i, s in enumerate(seen) if i == 0 or s != seen[i - 1]] == ["a", "ab", "abc"]

    @pytest.mark.asyncio
    async def test_skip_to_end_is_idempotent(self):
        transcript = Transcript()
        presenter = IncrementalPresenter(interval_seconds=10)
        reveal = presenter.start(transcript, "A long reply")

        presenter.skip_to_end()
        assert transcript.last.text == "A long reply"
        assert reveal.done

        presenter.skip_to_end()
        reveal.skip_to_end()
        assert transcript.last.text == "A long reply"
        assert len(transcript) == 1

    @pytest.mark.asyncio
    async def test_no_writes_after_completion(self):
        transcript = Transcript()
        reveal = IncrementalPresenter().start(transcript, "abc")
        reveal.skip_to_end()

        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert transcript.last.text == "abc"
        assert reveal.shown == 3

    @pytest.mark.asyncio
    async def test_new_reveal_completes_previous(self):
        transcript = Transcript()
        presenter = IncrementalPresenter(interval_seconds=10)
        first = presenter.start(transcript, "first reply")
        second = presenter.start(transcript, "second")

        assert first.done
        assert transcript[0].text == "first reply"
        assert transcript[1].text == "s"
        assert presenter.active is second

    @pytest.mark.asyncio
    async def test_chunks_yield_each_step(self):
        transcript = Transcript()
        reveal = IncrementalPresenter().start(transcript, "abcd")

        deltas = [chunk.delta async for chunk in reveal.chunks()]

        assert "".join(deltas) == "abcd"
        assert deltas[0] == "a"

    @pytest.mark.asyncio
    async def test_chunks_end_on_skip(self):
        transcript = Transcript()
        reveal = IncrementalPresenter(interval_seconds=10).start(transcript, "abcdef")

        chunks = []

        async def consume():
            async for chunk in reveal.chunks():
                chunks.append(chunk)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        reveal.skip_to_end()
        await asyncio.wait_for(task, timeout=1)

        assert "".join(c.delta for c in chunks) == "abcdef"
        assert chunks[-1].done

    @pytest.mark.asyncio
    async def test_empty_reply_finishes_at_once(self):
        transcript = Transcript()
        reveal = IncrementalPresenter().start(transcript, "")

        assert reveal.done
        assert len(transcript) == 0
        await asyncio.wait_for(reveal.wait(), timeout=1)

        reveal.skip_to_end()
        assert len(transcript) == 0


class TestExporter:
    """Tests for quiz export."""

    def test_export_docx_contains_lines(self):
        content = export_quiz_docx(segment(PARIS_REPLY))
        doc = DocxDocument(io.BytesIO(content))
        texts = [p.text for p in doc.paragraphs]
        assert "Q1: What is the capital of France?" in texts
        assert "A1: Paris" in texts

    def test_export_empty_quiz(self):
        with pytest.raises(NoQuizContextError):
            export_quiz_docx(Quiz())


class TestSessionStore:
    """Tests for session lifetime."""

    def test_idle_sessions_expire(self):
        now = [1000.0]
        store = SessionStore(ttl_seconds=60, clock=lambda: now[0])
        store.create(FakeGenerator(), "old")

        now[0] += 30
        store.get("old")
        now[0] += 45
        store.create(FakeGenerator(), "new")
        assert "old" in store

        now[0] += 61
        assert store.expire_idle() == 2
        assert len(store) == 0
        with pytest.raises(SessionNotFoundError):
            store.get("old")

    def test_busy_session_is_not_expired(self):
        now = [0.0]
        store = SessionStore(ttl_seconds=1, clock=lambda: now[0])
        controller = store.create(FakeGenerator(), "busy")

        with patch.object(type(controller), "busy", new_callable=PropertyMock, return_value=True):
            now[0] += 10
            assert store.expire_idle() == 0

        assert "busy" in store

    def test_no_ttl_keeps_sessions(self):
        now = [0.0]
        store = SessionStore(ttl_seconds=None, clock=lambda: now[0])
        store.create(FakeGenerator(), "kept")
        now[0] += 1e9
        assert store.expire_idle() == 0
        assert "kept" in store

    def test_detached_controller_is_not_registered(self):
        store = SessionStore()
        controller = store.detached(FakeGenerator())

        assert controller.session_id is None
        assert len(store) == 0

    def test_discard_and_end(self):
        store = SessionStore()
        store.create(FakeGenerator(), "a")

        store.discard("a")
        store.discard("a")
        assert len(store) == 0
        with pytest.raises(SessionNotFoundError):
            store.end("a")

"""Per-session conversation state machine for quiz generation and follow-ups."""
import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from docquiz.exceptions import (
    BusyError,
    DocQuizError,
    NoQuizContextError,
    QuizAlreadyGeneratedError,
)
from docquiz.models.session import Document, Message, Quiz, Role, SessionState, Transcript
from docquiz.services.extractor import extract_text, resolve_media_type, EXTENSION_MEDIA_TYPES
from docquiz.services.presenter import IncrementalPresenter, Reveal
from docquiz.services.prompts import FollowUpPrompt, QuizPrompt
from docquiz.services.segmenter import segment
from docquiz.utils.logger import logger
from docquiz.utils.metrics import PIPELINE_RUNS
from docquiz.utils.tracer import annotate_pipeline_span, pipeline_span


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


@dataclass(frozen=True)
class Idle:
    """No quiz has been generated yet."""


@dataclass(frozen=True)
class QuizReady:
    """A quiz exists and follow-up questions are accepted."""

    quiz: Quiz


ConversationState = Union[Idle, QuizReady]


def on_quiz_generated(state: ConversationState, quiz: Quiz) -> QuizReady:
    """Transition for a successful generation run. Fires only from Idle."""
    if isinstance(state, QuizReady):
        raise QuizAlreadyGeneratedError("A quiz has already been generated for this session.")
    return QuizReady(quiz=quiz)


def upload_message(document: Document) -> str:
    """Transcript text recorded for the user's upload."""
    labels = {media_type: ext.lstrip(".").upper() for ext, media_type in EXTENSION_MEDIA_TYPES.items()}
    try:
        label = labels[resolve_media_type(document.media_type, document.filename)]
    except DocQuizError:
        return "I have uploaded a file."
    return f"I have uploaded a {label} file."


class ConversationController:
    """
    Owns one session's state: the quiz, the transcript, and the active reveal.

    Pipeline runs are strictly serialized; a submission that arrives while
    another is in flight is rejected with ``BusyError``. A failed run leaves
    the state where it was; only the user's turn stays in the transcript.
    """

    def __init__(
        self,
        generator: TextGenerator,
        presenter: Optional[IncrementalPresenter] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize controller.

        Args:
            generator: Generation client used for every oracle call
            presenter: Presenter for assistant replies
            session_id: Identifier used in logs
        """
        self.generator = generator
        self.presenter = presenter or IncrementalPresenter()
        self.session_id = session_id
        self.state: ConversationState = Idle()
        self.transcript = Transcript()
        self._lock = asyncio.Lock()

    @property
    def has_quiz(self) -> bool:
        return isinstance(self.state, QuizReady)

    @property
    def quiz(self) -> Quiz:
        return self.state.quiz if isinstance(self.state, QuizReady) else Quiz()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        if self._lock.locked():
            PIPELINE_RUNS.labels(operation=operation, outcome="busy").inc()
            raise BusyError("Another request is already being processed for this session.")

        async with self._lock:
            start_time = time.time()
            with pipeline_span(operation, self.session_id):
                try:
                    yield
                except DocQuizError as e:
                    PIPELINE_RUNS.labels(operation=operation, outcome=type(e).__name__).inc()
                    logger.warning(
                        f"{operation} failed: {str(e)}",
                        extra={"session_id": self.session_id, "operation": operation},
                    )
                    raise
                PIPELINE_RUNS.labels(operation=operation, outcome="success").inc()
                logger.info(
                    f"{operation} completed",
                    extra={
                        "session_id": self.session_id,
                        "operation": operation,
                        "response_time_ms": (time.time() - start_time) * 1000,
                    },
                )

    def _append_user_turn(self, text: str):
        # A reveal still running must finish before a new entry goes after it
        self.presenter.complete()
        self.transcript.append(Message(role=Role.USER, text=text))

    async def submit_document(self, document: Document) -> Quiz:
        """
        Run extraction, prompt building, generation, and segmentation.

        Args:
            document: Uploaded document

        Returns:
            The generated quiz, also installed as the session's context

        Raises:
            QuizAlreadyGeneratedError: If the session already has a quiz
            BusyError: If another run is in flight
            DocQuizError: The failing stage's error
        """
        async with self._exclusive("generate_quiz"):
            if isinstance(self.state, QuizReady):
                raise QuizAlreadyGeneratedError("A quiz has already been generated for this session.")

            self._append_user_turn(upload_message(document))

            text = await asyncio.to_thread(extract_text, document)
            prompt = QuizPrompt.build(text)
            raw = await self.generator.generate(prompt)
            quiz = segment(raw)

            self.state = on_quiz_generated(self.state, quiz)
            self.presenter.start(self.transcript, quiz.to_text())
            annotate_pipeline_span(quiz_lines=len(quiz), text_length=len(text))

            logger.info(
                f"Quiz generated with {len(quiz)} lines",
                extra={"session_id": self.session_id, "quiz_lines": len(quiz)},
            )
            return quiz

    async def ask(self, question: str) -> str:
        """
        Answer a follow-up question using the quiz as the only context.

        Args:
            question: User's question

        Returns:
            The oracle's reply

        Raises:
            NoQuizContextError: If no quiz exists yet
            BusyError: If another run is in flight
            MissingInputError: If the question is empty
            GenerationFailedError: If the oracle call fails
        """
        async with self._exclusive("ask_follow_up"):
            if not isinstance(self.state, QuizReady):
                raise NoQuizContextError("No quiz has been generated for this session yet.")

            prompt = FollowUpPrompt.build(self.state.quiz, question)
            self._append_user_turn(question.strip())

            reply = await self.generator.generate(prompt)
            self.presenter.start(self.transcript, reply)
            annotate_pipeline_span(reply_length=len(reply))
            return reply

    def restore_quiz(self, quiz: Quiz) -> None:
        """Install a quiz carried by the client, for sessions the server no longer holds."""
        self.state = on_quiz_generated(self.state, quiz)

    @property
    def reveal(self) -> Optional[Reveal]:
        return self.presenter.active

    def skip_reveal(self) -> None:
        self.presenter.complete()

    def snapshot(self) -> SessionState:
        return SessionState(
            has_quiz=self.has_quiz,
            quiz=self.quiz,
            transcript=self.transcript.to_list(),
            reveal_in_progress=self.presenter.in_progress,
        )

    def close(self) -> None:
        """End the session; any running reveal is completed."""
        self.presenter.complete()

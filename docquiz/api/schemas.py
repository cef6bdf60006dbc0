"""Pydantic schemas for API requests and responses."""
import re
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from docquiz.models.session import Quiz, SessionState
from docquiz.services.segmenter import segment


def _strip_control_characters(value: str) -> str:
    # Keep \n, \t and \r
    return re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]', '', value)


class GenerateQuizResponse(BaseModel):
    """Response schema for quiz generation."""

    session_id: str = Field(..., description="Session holding the quiz and transcript")
    quiz: List[str] = Field(..., description="Quiz lines in order")


class AskFollowUpRequest(BaseModel):
    """Request schema for follow-up questions about a quiz."""

    question: str = Field(..., description="User's question")
    quiz: Union[str, List[str]] = Field(..., description="Quiz text or quiz lines")

    @field_validator("question")
    @classmethod
    def clean_question(cls, v: str) -> str:
        """Remove control characters and reject blank questions."""
        cleaned = _strip_control_characters(v).strip()
        if not cleaned:
            raise ValueError("Question cannot be empty")
        return cleaned

    @field_validator("quiz")
    @classmethod
    def check_quiz(cls, v: Union[str, List[str]]) -> Union[str, List[str]]:
        text = v if isinstance(v, str) else "\n".join(v)
        if not text.strip():
            raise ValueError("Quiz context cannot be empty")
        return v

    def to_quiz(self) -> Quiz:
        text = self.quiz if isinstance(self.quiz, str) else "\n".join(self.quiz)
        return segment(text)


class AskFollowUpResponse(BaseModel):
    """Response schema for follow-up answers."""

    session_id: Optional[str] = None
    reply: str


class MessageSchema(BaseModel):
    role: str
    text: str


class SessionResponse(BaseModel):
    """Snapshot of a session."""

    session_id: str
    has_quiz: bool
    quiz: List[str]
    transcript: List[MessageSchema]
    reveal_in_progress: bool

    @classmethod
    def from_state(cls, session_id: str, state: SessionState) -> "SessionResponse":
        return cls(
            session_id=session_id,
            has_quiz=state.has_quiz,
            quiz=list(state.quiz),
            transcript=[MessageSchema(role=m.role.value, text=m.text) for m in state.transcript],
            reveal_in_progress=state.reveal_in_progress,
        )

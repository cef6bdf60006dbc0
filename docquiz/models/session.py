"""Session data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Document:
    """Represents an uploaded document before extraction."""

    content: bytes
    media_type: str
    filename: Optional[str] = None


@dataclass(frozen=True)
class Quiz:
    """Ordered, immutable question/answer lines generated from a document."""

    lines: Tuple[str, ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def to_text(self) -> str:
        """Serialize the quiz back to newline-joined text."""
        return "\n".join(self.lines)


class Role(str, Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """Represents a single transcript entry."""

    role: Role
    text: str


class Transcript:
    """Append-only message log; only the final entry may be rewritten."""

    def __init__(self):
        self._messages: List[Message] = []

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def append(self, message: Message) -> int:
        """Append a message and return its index."""
        self._messages.append(message)
        return len(self._messages) - 1

    def rewrite(self, index: int, text: str) -> None:
        """
        Replace the text of the entry at ``index``.

        Raises:
            IndexError: If ``index`` is not the final entry
        """
        if index != len(self._messages) - 1:
            raise IndexError(f"Only the final transcript entry can be rewritten (got {index})")
        self._messages[index] = Message(role=self._messages[index].role, text=text)

    def to_list(self) -> List[Message]:
        return list(self._messages)


@dataclass
class SessionState:
    """Point-in-time view of a conversation session."""

    has_quiz: bool
    quiz: Quiz
    transcript: List[Message] = field(default_factory=list)
    reveal_in_progress: bool = False

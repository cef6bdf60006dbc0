"""Centralized prompt templates for quiz generation and follow-up questions."""
from docquiz.exceptions import MissingInputError
from docquiz.models.session import Quiz


def _require(value: str, name: str) -> str:
    if not value or not value.strip():
        raise MissingInputError(f"Missing {name}.")
    return value


class QuizPrompt:
    """Prompt template for generating a quiz from extracted document text."""

    TEMPLATE = "Generate a quiz for the following text:\n\n{text}."

    @classmethod
    def build(cls, text: str) -> str:
        """
        Build quiz generation prompt.

        Args:
            text: Text extracted from the uploaded document

        Returns:
            Formatted prompt string

        Raises:
            MissingInputError: If text is empty
        """
        _require(text, "document text")
        return cls.TEMPLATE.format(text=text)


class FollowUpPrompt:
    """Prompt template for answering a question with the quiz as context."""

    TEMPLATE = (
        "Below is a quiz generated from a document:\n\n"
        "{quiz}\n\n"
        "Using only the quiz above as context, answer the following question about the quiz:\n"
        "{question}"
    )

    @classmethod
    def build(cls, quiz: Quiz, question: str) -> str:
        """
        Build follow-up prompt.

        Args:
            quiz: The session's quiz, re-sent in full on every turn
            question: User's follow-up question

        Returns:
            Formatted prompt string

        Raises:
            MissingInputError: If the quiz or the question is empty
        """
        quiz_text = _require(quiz.to_text(), "quiz context")
        _require(question, "question")
        return cls.TEMPLATE.format(quiz=quiz_text, question=question)

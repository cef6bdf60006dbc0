"""Word export of a generated quiz."""
import io

from docx import Document as DocxDocument

from docquiz.exceptions import NoQuizContextError
from docquiz.models.session import Quiz


DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def export_quiz_docx(quiz: Quiz, title: str = "Quiz") -> bytes:
    """
    Render quiz lines as paragraphs of a DOCX document.

    Raises:
        NoQuizContextError: If the quiz has no lines
    """
    if quiz.is_empty:
        raise NoQuizContextError("There is no quiz to export.")

    doc = DocxDocument()
    doc.add_heading(title, level=1)
    for line in quiz:
        doc.add_paragraph(line)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()

"""Split raw model output into quiz lines."""
from docquiz.models.session import Quiz


def segment(raw: str) -> Quiz:
    """Split ``raw`` on line breaks, dropping blank lines and keeping order."""
    if not raw:
        return Quiz()
    return Quiz(tuple(line for line in raw.splitlines() if line.strip()))

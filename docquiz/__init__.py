"""Document-to-quiz conversational pipeline."""

__version__ = "1.0.0"

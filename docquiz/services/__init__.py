"""Quiz pipeline services: extraction, prompts, generation, and session state."""
from docquiz.services.conversation import ConversationController, Idle, QuizReady
from docquiz.services.extractor import extract_text
from docquiz.services.generation_client import GenerationClient, GenerationConfig
from docquiz.services.presenter import IncrementalPresenter, Reveal
from docquiz.services.prompts import FollowUpPrompt, QuizPrompt
from docquiz.services.segmenter import segment
from docquiz.services.session_store import SessionStore

__all__ = [
    "ConversationController",
    "Idle",
    "QuizReady",
    "extract_text",
    "GenerationClient",
    "GenerationConfig",
    "IncrementalPresenter",
    "Reveal",
    "FollowUpPrompt",
    "QuizPrompt",
    "segment",
    "SessionStore",
]

"""Service accessors shared by the route modules."""
from fastapi import HTTPException

from docquiz.services.generation_client import GenerationClient
from docquiz.services.session_store import SessionStore


def get_app_settings():
    """Get application settings from main app."""
    from docquiz.main import settings
    if settings is None:
        raise HTTPException(status_code=503, detail="Settings not initialized")
    return settings


def get_session_store() -> SessionStore:
    """Get session store from main app."""
    from docquiz.main import session_store
    if session_store is None:
        raise HTTPException(status_code=503, detail="Session store not initialized")
    return session_store


def resolve_generation_client() -> GenerationClient:
    """Build the shared generation client on first use."""
    from docquiz import main
    if main.generation_client is None:
        main.generation_client = main.build_generation_client(get_app_settings())
    return main.generation_client


class DeferredGenerationClient:
    """
    Stands in for the generation client until the first oracle call.

    The credential is checked when ``generate`` runs, after the request's
    input has been validated, extracted, and turned into a prompt. Bad
    input is therefore reported as such even when no key is configured.
    """

    async def generate(self, prompt: str) -> str:
        return await resolve_generation_client().generate(prompt)


def get_generation_client() -> DeferredGenerationClient:
    return DeferredGenerationClient()

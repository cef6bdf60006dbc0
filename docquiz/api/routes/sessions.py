"""Session inspection, reveal streaming, and quiz download endpoints."""
from fastapi import APIRouter, Depends
from starlette.responses import Response, StreamingResponse

from docquiz.api.dependencies import get_session_store
from docquiz.api.schemas import SessionResponse
from docquiz.exceptions import NoQuizContextError
from docquiz.services.exporter import DOCX_MEDIA_TYPE, export_quiz_docx
from docquiz.services.session_store import SessionStore


router = APIRouter()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Return the session's state, quiz, and transcript."""
    controller = store.get(session_id)
    return SessionResponse.from_state(session_id, controller.snapshot())


@router.delete("/sessions/{session_id}")
async def end_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    store.end(session_id)
    return {"session_id": session_id, "message": "Session ended"}


@router.get("/sessions/{session_id}/reveal")
async def stream_reveal(session_id: str, store: SessionStore = Depends(get_session_store)):
    """
    Stream the reply currently being revealed, one step per chunk.

    The stream starts with everything shown so far and ends when the full
    reply is shown, either by stepping or by a skip.
    """
    controller = store.get(session_id)
    reveal = controller.reveal
    if reveal is None:
        return Response(status_code=204)

    async def body():
        async for chunk in reveal.chunks():
            if chunk.delta:
                yield chunk.delta

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")


@router.post("/sessions/{session_id}/reveal/skip", response_model=SessionResponse)
async def skip_reveal(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Show the reply being revealed in full at once."""
    controller = store.get(session_id)
    controller.skip_reveal()
    return SessionResponse.from_state(session_id, controller.snapshot())


@router.get("/sessions/{session_id}/quiz.docx")
async def download_quiz(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Download the session's quiz as a Word document."""
    controller = store.get(session_id)
    if not controller.has_quiz:
        raise NoQuizContextError("No quiz has been generated for this session yet.")

    content = export_quiz_docx(controller.quiz)
    return Response(
        content=content,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="quiz.docx"'},
    )

"""Quiz generation and follow-up endpoints."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile

from docquiz.api.dependencies import get_app_settings, get_generation_client, get_session_store
from docquiz.api.schemas import AskFollowUpRequest, AskFollowUpResponse, GenerateQuizResponse
from docquiz.exceptions import DocQuizError, FileSizeExceededError, MissingInputError
from docquiz.models.session import Document
from docquiz.services.conversation import TextGenerator
from docquiz.services.session_store import SessionStore
from docquiz.utils.logger import logger


router = APIRouter()


@router.post("/generate-quiz", response_model=GenerateQuizResponse)
async def generate_quiz(
    file: Annotated[Optional[UploadFile], File()] = None,
    x_session_id: Annotated[Optional[str], Header()] = None,
    store: SessionStore = Depends(get_session_store),
    generator: TextGenerator = Depends(get_generation_client),
    app_settings=Depends(get_app_settings),
):
    """
    Generate a quiz from an uploaded document (PDF, DOCX, or TXT).

    A session the server created for this request is discarded again if the
    run fails, since the client never learns its id. A session named by
    ``X-Session-ID`` is kept so the client can inspect, retry, or end it.

    Args:
        file: Document file to turn into a quiz
        x_session_id: Existing session to use; a new one is created if absent
        store: Session store
        generator: Generation client

    Returns:
        GenerateQuizResponse with the session id and quiz lines
    """
    if file is None:
        raise MissingInputError("No file uploaded")

    anonymous_session: Optional[str] = None
    try:
        content = await file.read()

        max_bytes = app_settings.max_file_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise FileSizeExceededError(
                f"File size ({len(content) / (1024 * 1024):.2f} MB) exceeds maximum allowed size "
                f"({app_settings.max_file_size_mb} MB)."
            )

        document = Document(content=content, media_type=file.content_type or "", filename=file.filename)
        controller = store.get_or_create(x_session_id, generator)
        if not x_session_id:
            anonymous_session = controller.session_id
        quiz = await controller.submit_document(document)

        return GenerateQuizResponse(session_id=controller.session_id, quiz=list(quiz))

    except DocQuizError:
        if anonymous_session:
            store.discard(anonymous_session)
        raise
    except Exception as e:
        if anonymous_session:
            store.discard(anonymous_session)
        logger.error(f"Unexpected error generating quiz: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/ask-follow-up", response_model=AskFollowUpResponse)
async def ask_follow_up(
    request: AskFollowUpRequest,
    x_session_id: Annotated[Optional[str], Header()] = None,
    store: SessionStore = Depends(get_session_store),
    generator: TextGenerator = Depends(get_generation_client),
):
    """
    Answer a question about a quiz.

    When ``X-Session-ID`` names a live session its quiz is the context and
    the exchange is added to its transcript. Otherwise the quiz sent in the
    request body is the context and nothing is kept after the reply.

    Args:
        request: AskFollowUpRequest with question and quiz
        x_session_id: Session the question belongs to
        store: Session store
        generator: Generation client

    Returns:
        AskFollowUpResponse with the reply, and the session id when one was used
    """
    try:
        if x_session_id and x_session_id in store:
            controller = store.get(x_session_id)
        else:
            controller = store.detached(generator)
            controller.restore_quiz(request.to_quiz())

        try:
            reply = await controller.ask(request.question)
        finally:
            if controller.session_id is None:
                controller.close()

        return AskFollowUpResponse(session_id=controller.session_id, reply=reply)

    except DocQuizError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error answering follow-up: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

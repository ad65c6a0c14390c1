"""Face search API endpoints."""
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from facesearch.api.models.search import (
    ReferenceResponse,
    SearchRequest,
    SearchStartedResponse,
    SearchStateResponse,
    SessionResponse,
)
from facesearch.core.config import settings
from facesearch.core.container import ServiceContainer
from facesearch.core.exceptions import (
    ExtractionFailedError,
    InvalidFolderLocatorError,
    ReferenceSupersededError,
    SessionNotFoundError,
)
from facesearch.core.logging import get_logger
from facesearch.infrastructure.dependencies import get_container, get_session
from facesearch.services.archive import build_archive
from facesearch.services.search_session import FaceSearchSession

logger = get_logger(__name__)
router = APIRouter(
    tags=["face-search"],
    responses={
        404: {"description": "Unknown search session"},
        500: {"description": "Internal server error"}
    }
)


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a search session",
)
async def create_session(
    cont: ServiceContainer = Depends(get_container),
) -> SessionResponse:
    """Create a session holding one reference face and one search run."""
    return SessionResponse(session_id=await cont.create_session())


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a search session",
)
async def delete_session(
    session_id: str,
    cont: ServiceContainer = Depends(get_container),
) -> Response:
    """Stop the session's search and release its reference and matches."""
    try:
        await cont.remove_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/sessions/{session_id}/reference",
    response_model=ReferenceResponse,
    summary="Upload the reference photo",
    description="Extracts the face to search for. Replaces any previous reference and "
                "supersedes the running search.",
    responses={
        409: {"description": "Superseded by a newer reference photo"},
        422: {"description": "Cannot detect face in selected photo"},
    },
)
async def upload_reference(
    file: UploadFile = File(...),
    session: FaceSearchSession = Depends(get_session),
) -> ReferenceResponse:
    """Replace the session's reference face with the one in the uploaded photo."""
    image_bytes = await file.read()
    try:
        reference = await session.set_reference(image_bytes, file.filename)
    except ExtractionFailedError as e:
        logger.warning("Reference extraction failed", error=str(e))
        raise HTTPException(status_code=422, detail="Cannot detect face in selected photo.")
    except ReferenceSupersededError:
        raise HTTPException(status_code=409, detail="Superseded by a newer reference photo.")
    return ReferenceResponse.from_reference(reference, file.filename)


@router.delete(
    "/sessions/{session_id}/reference",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the reference photo",
)
async def clear_reference(session: FaceSearchSession = Depends(get_session)) -> Response:
    """Forget the reference face and supersede the running search."""
    session.clear_reference()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/search",
    response_model=SearchStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Search a folder",
    description="Starts searching the folder in the background. Poll the search state "
                "for progress and matches.",
    responses={
        400: {"description": "Invalid folder link"},
        409: {"description": "No reference face"},
    },
)
async def start_search(
    request: SearchRequest,
    session: FaceSearchSession = Depends(get_session),
) -> SearchStartedResponse:
    """Start a search run for the session's reference face."""
    try:
        generation = await session.submit_search(request.folder_link)
    except InvalidFolderLocatorError as e:
        logger.warning("Invalid folder link", folder_link=request.folder_link)
        raise HTTPException(status_code=400, detail=str(e))

    if generation is None:
        raise HTTPException(status_code=409, detail="Upload a photo with a detectable face first.")
    return SearchStartedResponse(generation=generation)


@router.get(
    "/sessions/{session_id}/search",
    response_model=SearchStateResponse,
    summary="Get search progress and matches",
)
async def get_search_state(
    session: FaceSearchSession = Depends(get_session),
) -> SearchStateResponse:
    """Return the current run state of the session."""
    return SearchStateResponse.from_state(session.state(), session.reference is not None)


@router.get(
    "/sessions/{session_id}/search/archive",
    summary="Download matching photos",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}}},
)
async def download_archive(session: FaceSearchSession = Depends(get_session)) -> Response:
    """Zip every photo matched so far in the current run."""
    archive = build_archive(session.state().results)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{settings.ARCHIVE_NAME}"'},
    )

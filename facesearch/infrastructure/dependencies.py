"""FastAPI dependency providers."""
from fastapi import Depends, HTTPException

from facesearch.core.container import ServiceContainer, container
from facesearch.core.exceptions import ServiceNotInitializedError, SessionNotFoundError
from facesearch.services.search_session import FaceSearchSession


async def get_container() -> ServiceContainer:
    """Dependency provider for the global ServiceContainer instance."""
    if not container.initialized:
        try:
            await container.initialize()
        except Exception as e:
            raise ServiceNotInitializedError(f"Service container could not be initialized: {e}")
    return container


async def get_session(
    session_id: str,
    cont: ServiceContainer = Depends(get_container),
) -> FaceSearchSession:
    """Provide the search session named in the request path.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    try:
        return await cont.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

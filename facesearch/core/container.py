"""Service container for dependency injection."""
import time
import uuid
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from facesearch.core.config import settings
from facesearch.core.exceptions import ServiceNotInitializedError, SessionNotFoundError
from facesearch.core.logging import get_logger
from facesearch.domain.interfaces.recognition.face_recognition import FaceRecognitionService
from facesearch.domain.interfaces.storage.folder_storage import FolderStorage
from facesearch.services.batch_scheduler import BatchScheduler
from facesearch.services.folder_enumerator import FolderEnumerator
from facesearch.services.match_evaluator import MatchEvaluator
from facesearch.services.reference_extractor import ReferenceExtractor
from facesearch.services.search_session import FaceSearchSession

logger = get_logger(__name__)


def create_storage() -> FolderStorage:
    """Instantiate the configured storage provider."""
    if settings.STORAGE_PROVIDER == "s3":
        from facesearch.services.aws.s3 import S3FolderStorage
        return S3FolderStorage()

    from facesearch.services.google.drive import GoogleDriveStorage
    return GoogleDriveStorage()


def create_face_service() -> FaceRecognitionService:
    """Instantiate the InsightFace face capability."""
    from facesearch.services.recognition.insight_face import InsightFaceRecognitionService
    return InsightFaceRecognitionService()


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of all services in
    the application and keeps the search sessions of API clients. Sessions
    idle for longer than SESSION_IDLE_TIMEOUT_SECONDS are evicted, and the
    least recently used one is evicted once MAX_SESSIONS is exceeded.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        session_id = await container.create_session()
        session = container.get_session(session_id)
        await container.remove_session(session_id)
        ```
    """

    def __init__(
        self,
        max_sessions: Optional[int] = None,
        session_idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize empty container."""
        self.storage: Optional[FolderStorage] = None
        self.face_recognition_service: Optional[FaceRecognitionService] = None

        self.reference_extractor: Optional[ReferenceExtractor] = None
        self.folder_enumerator: Optional[FolderEnumerator] = None
        self.match_evaluator: Optional[MatchEvaluator] = None
        self.batch_scheduler: Optional[BatchScheduler] = None

        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions
        self.session_idle_timeout = (
            settings.SESSION_IDLE_TIMEOUT_SECONDS
            if session_idle_timeout is None else session_idle_timeout
        )
        if self.max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._clock = clock
        # Least recently used first
        self.sessions: "OrderedDict[str, FaceSearchSession]" = OrderedDict()
        self._last_used: Dict[str, float] = {}

    @property
    def initialized(self) -> bool:
        return self.batch_scheduler is not None

    async def initialize(
        self,
        storage: Optional[FolderStorage] = None,
        face_service: Optional[FaceRecognitionService] = None,
    ) -> None:
        """Initialize all services in the correct order."""
        self.storage = storage or create_storage()
        self.face_recognition_service = face_service or create_face_service()

        self.reference_extractor = ReferenceExtractor(self.face_recognition_service)
        self.folder_enumerator = FolderEnumerator(self.storage)
        self.match_evaluator = MatchEvaluator(
            storage=self.storage,
            face_service=self.face_recognition_service,
        )
        self.batch_scheduler = BatchScheduler(self.folder_enumerator, self.match_evaluator)
        logger.info(
            "Service container initialized",
            storage=type(self.storage).__name__,
            batch_size=self.batch_scheduler.batch_size,
        )

    async def create_session(self) -> str:
        """Create a search session and return its id."""
        if not self.initialized:
            raise ServiceNotInitializedError("Service container is not initialized")
        await self.evict_sessions()

        session_id = uuid.uuid4().hex
        self.sessions[session_id] = FaceSearchSession(
            extractor=self.reference_extractor,
            scheduler=self.batch_scheduler,
        )
        self._last_used[session_id] = self._clock()

        while len(self.sessions) > self.max_sessions:
            oldest = next(iter(self.sessions))
            logger.info("Evicting least recently used search session", session_id=oldest)
            await self.remove_session(oldest)

        logger.info("Search session created", session_id=session_id, sessions=len(self.sessions))
        return session_id

    async def get_session(self, session_id: str) -> FaceSearchSession:
        """Look up a search session and mark it as used.

        Raises:
            SessionNotFoundError: If the id is unknown, removed or expired
        """
        await self.evict_sessions()
        try:
            session = self.sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Unknown search session: {session_id}") from None

        self.sessions.move_to_end(session_id)
        self._last_used[session_id] = self._clock()
        return session

    async def remove_session(self, session_id: str) -> None:
        """Stop a session's runs and drop it.

        Raises:
            SessionNotFoundError: If the id is unknown
        """
        session = self.sessions.pop(session_id, None)
        self._last_used.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"Unknown search session: {session_id}")
        await session.cancel()
        logger.info("Search session removed", session_id=session_id)

    async def evict_sessions(self) -> List[str]:
        """Remove every session idle for longer than the idle timeout."""
        deadline = self._clock() - self.session_idle_timeout
        expired = [
            session_id for session_id, last_used in self._last_used.items()
            if last_used < deadline
        ]
        for session_id in expired:
            if session_id not in self.sessions:
                continue
            logger.info("Evicting idle search session", session_id=session_id)
            await self.remove_session(session_id)
        return expired

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        for session in list(self.sessions.values()):
            await session.close()
        self.sessions.clear()
        self._last_used.clear()

        self.batch_scheduler = None
        self.match_evaluator = None
        self.folder_enumerator = None
        self.reference_extractor = None
        self.face_recognition_service = None

        if self.storage is not None:
            await self.storage.close()
            self.storage = None


# Global container instance
container = ServiceContainer()

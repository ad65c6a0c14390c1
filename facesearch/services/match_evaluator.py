"""Per-file match evaluation against the reference face."""
import asyncio
from typing import Optional

from facesearch.core.config import settings
from facesearch.core.exceptions import DecodeFailedError, FetchFailedError
from facesearch.core.logging import get_logger
from facesearch.core.utils.image import bytes_to_numpy_array, to_data_uri
from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.entities.files import CandidateFile, MatchResult
from facesearch.domain.interfaces.recognition.face_recognition import FaceRecognitionService
from facesearch.domain.interfaces.storage.folder_storage import FolderStorage
from facesearch.services.recognition.matcher import FaceMatcher

logger = get_logger(__name__)


class MatchEvaluator:
    """Downloads one candidate file and checks it for the reference face.

    This service:
    1. Downloads the file content from storage
    2. Decodes it into an image
    3. Detects every face above the confidence threshold
    4. Queries a nearest-neighbour matcher over those faces with the reference
    """

    def __init__(
        self,
        storage: FolderStorage,
        face_service: FaceRecognitionService,
        min_confidence: Optional[float] = None,
        distance_threshold: Optional[float] = None,
        max_image_pixels: Optional[int] = None,
    ) -> None:
        """Initialize the match evaluator.

        Args:
            storage: Storage the candidate files are downloaded from
            face_service: Face detection and descriptor extraction
            min_confidence: Detection confidence floor, defaults to MIN_CONFIDENCE
            distance_threshold: Maximum match distance, defaults to FACE_MATCHER_THRESHOLD
            max_image_pixels: Decoded images above this size are downscaled
        """
        self.storage = storage
        self.face_service = face_service
        self.min_confidence = (
            settings.MIN_CONFIDENCE if min_confidence is None else min_confidence
        )
        self.distance_threshold = (
            settings.FACE_MATCHER_THRESHOLD if distance_threshold is None else distance_threshold
        )
        self.max_image_pixels = max_image_pixels or settings.MAX_IMAGE_PIXELS

    async def evaluate(
        self,
        file: CandidateFile,
        reference: ReferenceFace,
    ) -> Optional[MatchResult]:
        """Check whether the reference face appears in a candidate file.

        Args:
            file: Candidate file to download and inspect
            reference: Face being searched for

        Returns:
            MatchResult if a detected face is within the distance threshold,
            None if the image has no face or no face close enough

        Raises:
            FetchFailedError: If the content cannot be downloaded
            DecodeFailedError: If the content is not a decodable image
        """
        try:
            content = await self.storage.download_content(file.id)
        except FetchFailedError:
            raise
        except Exception as e:
            raise FetchFailedError(
                f"Download of '{file.name}' failed: {e}", details={"file_id": file.id}
            ) from e

        try:
            image = await asyncio.to_thread(
                bytes_to_numpy_array, content, max_pixels=self.max_image_pixels
            )
        except ValueError as e:
            raise DecodeFailedError(
                f"Cannot decode '{file.name}': {e}", details={"file_id": file.id}
            ) from e

        faces = await self.face_service.detect_all_faces(image, self.min_confidence)
        if not faces:
            logger.debug("No faces detected", file_id=file.id, name=file.name)
            return None

        matcher = FaceMatcher([face.descriptor for face in faces], self.distance_threshold)
        best_match = matcher.best_match(reference.descriptor)

        if best_match.is_unknown:
            logger.debug(
                "Faces present but none matched",
                file_id=file.id,
                faces=len(faces),
                distance=round(best_match.distance, 4),
            )
            return None

        logger.info(
            "Matching face found",
            file_id=file.id,
            name=file.name,
            label=best_match.label,
            distance=round(best_match.distance, 4),
        )
        return MatchResult(
            file=file,
            content=content,
            display_src=to_data_uri(content, file.mime_type or "application/octet-stream"),
            label=best_match.label,
            distance=best_match.distance,
        )

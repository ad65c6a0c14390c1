"""Reference face extraction from the user's query photo."""
import asyncio
from typing import Optional

from facesearch.core.config import settings
from facesearch.core.exceptions import ExtractionFailedError
from facesearch.core.logging import get_logger
from facesearch.core.utils.image import bytes_to_numpy_array
from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.interfaces.recognition.face_recognition import FaceRecognitionService

logger = get_logger(__name__)


class ReferenceExtractor:
    """Turns one image into at most one reference descriptor."""

    def __init__(
        self,
        face_service: FaceRecognitionService,
        max_image_pixels: Optional[int] = None,
    ) -> None:
        self.face_service = face_service
        self.max_image_pixels = max_image_pixels or settings.MAX_IMAGE_PIXELS

    async def extract_reference(
        self,
        image_bytes: bytes,
        source_image_ref: Optional[str] = None,
    ) -> Optional[ReferenceFace]:
        """Extract the descriptor of the most confident face in the image.

        Args:
            image_bytes: Raw image data of the query photo
            source_image_ref: Display handle of the photo, kept on the result

        Returns:
            ReferenceFace, or None when no face is found in the photo

        Raises:
            ExtractionFailedError: If the image cannot be decoded or the
                face capability fails
        """
        try:
            image = await asyncio.to_thread(
                bytes_to_numpy_array, image_bytes, max_pixels=self.max_image_pixels
            )
            face = await self.face_service.detect_best_face(image)
        except Exception as e:
            logger.error("Reference extraction failed", error=str(e), exc_info=True)
            raise ExtractionFailedError(f"Cannot detect face in reference image: {e}") from e

        if face is None:
            logger.info("No face detected in reference image", source=source_image_ref)
            return None

        logger.info(
            "Reference face extracted",
            source=source_image_ref,
            confidence=round(face.confidence, 3),
        )
        return ReferenceFace(descriptor=face.descriptor, source_image_ref=source_image_ref)

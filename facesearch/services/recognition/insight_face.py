"""
InsightFace-based implementation of the face recognition service.

This module provides a concrete implementation of the face capability used by
the search pipeline. It detects faces in decoded images and extracts, for each
face, its landmarks and an L2-normalized descriptor vector.

Example:
    ```python
    service = InsightFaceRecognitionService()

    image = bytes_to_numpy_array(image_bytes)
    best = await service.detect_best_face(image)
    faces = await service.detect_all_faces(image, min_confidence=0.3)
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    modify the providers list in __init__ to include 'CUDAExecutionProvider'.
"""
import asyncio
from typing import Any, List, Optional, TypeVar

import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from facesearch.core.config import settings
from facesearch.core.exceptions import ModelLoadError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.face import BoundingBox, DetectedFace
from facesearch.domain.interfaces.recognition.face_recognition import FaceRecognitionService

logger = get_logger(__name__)

T = TypeVar('T', bound='InsightFaceRecognitionService')

# Faces below this score are discarded by the detector itself
DETECTOR_FLOOR = 0.1


class InsightFaceRecognitionService(FaceRecognitionService):
    """
    InsightFace-based implementation of the face recognition service.

    Inference runs in a worker thread so that concurrent evaluations keep
    sharing the event loop while a model call is in progress.

    Attributes:
        model: InsightFace model instance for face analysis
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        model_root: Optional[str] = None,
        det_size: Optional[int] = None,
    ) -> None:
        """Initialize the InsightFace model."""
        name = model_name or settings.MODEL_PATH
        size = det_size or settings.DETECTION_SIZE
        try:
            self.model = FaceAnalysis(
                name=name,
                root=model_root or settings.MODEL_CACHE_DIR,
                allowed_modules=["detection", "landmark_2d_106", "recognition"],
                providers=['CPUExecutionProvider']
            )
            self.model.prepare(ctx_id=0, det_thresh=DETECTOR_FLOOR, det_size=(size, size))
        except Exception as e:
            logger.error("Failed to load face model", model=name, error=str(e), exc_info=True)
            raise ModelLoadError(f"Failed to load face model '{name}': {e}") from e

    async def __aenter__(self: T) -> T:
        """Enter async context, ensuring resources are ready."""
        logger.debug("Entering InsightFace service context")
        return self

    async def __aexit__(self, exc_type: Optional[type], exc_val: Optional[Exception],
                        exc_tb: Optional[Any]) -> None:
        """Exit async context, releasing the model."""
        logger.debug("Cleaning up InsightFace service resources")
        if exc_type:
            logger.error(
                "Error occurred during context exit",
                error=str(exc_val),
                exc_info=True
            )
        self.model = None

    def _convert_to_face(self, face_data: InsightFace, image_shape: tuple) -> DetectedFace:
        """
        Convert an InsightFace detection result to the DetectedFace domain model.

        Args:
            face_data: Face detection result from InsightFace
            image_shape: Shape of the image the face was found in

        Returns:
            DetectedFace with normalized coordinates (0-1) and a unit-length descriptor
        """
        bbox = face_data.bbox.astype(int)
        height, width = image_shape[:2]
        bounding_box = BoundingBox(
            top=float(bbox[1] / height),
            left=float(bbox[0] / width),
            width=float((bbox[2] - bbox[0]) / width),
            height=float((bbox[3] - bbox[1]) / height)
        )

        landmarks = face_data.get("landmark_2d_106")
        if landmarks is None:
            landmarks = face_data.get("kps")

        return DetectedFace(
            bounding_box=bounding_box,
            confidence=float(face_data.det_score),
            descriptor=face_data.normed_embedding,
            landmarks=landmarks,
        )

    async def _process_image(self, image: np.ndarray) -> List[InsightFace]:
        """
        Run the InsightFace pipeline on a decoded image.

        Args:
            image: Image array to process

        Returns:
            Raw detections that carry an embedding
        """
        if self.model is None:
            raise ModelLoadError("Face model has been released")
        try:
            faces = await asyncio.to_thread(self.model.get, image)
        except Exception as e:
            logger.error(
                "Face processing failed",
                error=str(e),
                image_shape=image.shape,
                exc_info=True
            )
            raise

        faces = [face for face in faces if face.get("embedding") is not None]
        logger.debug("Face detection results", faces_found=len(faces), image_shape=image.shape)
        return faces

    async def detect_best_face(self, image: np.ndarray) -> Optional[DetectedFace]:
        """Detect the most confident face in the image."""
        faces = await self._process_image(image)
        if not faces:
            return None
        best = max(faces, key=lambda face: float(face.det_score))
        return self._convert_to_face(best, image.shape)

    async def detect_all_faces(
        self,
        image: np.ndarray,
        min_confidence: float,
    ) -> List[DetectedFace]:
        """Detect every face scoring at least ``min_confidence``."""
        faces = await self._process_image(image)
        return [
            self._convert_to_face(face, image.shape)
            for face in faces
            if float(face.det_score) >= min_confidence
        ]

"""Face recognition service interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from ...entities.face import DetectedFace


class FaceRecognitionService(ABC):
    """Interface for face detection and descriptor extraction."""

    @abstractmethod
    async def detect_best_face(self, image: np.ndarray) -> Optional[DetectedFace]:
        """
        Detect the single most confident face in a decoded image.

        Args:
            image: Decoded BGR image

        Returns:
            The detected face with landmarks and descriptor, or None when
            the image contains no face.
        """
        pass

    @abstractmethod
    async def detect_all_faces(
        self,
        image: np.ndarray,
        min_confidence: float,
    ) -> List[DetectedFace]:
        """
        Detect every face whose detection confidence reaches ``min_confidence``.

        Args:
            image: Decoded BGR image
            min_confidence: Minimum detection confidence (0-1)

        Returns:
            Detected faces with landmarks and descriptors. Empty when no face
            qualifies.
        """
        pass

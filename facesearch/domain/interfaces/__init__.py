"""Service interfaces package."""
from .recognition import FaceRecognitionService
from .storage import FolderStorage

__all__ = ["FaceRecognitionService", "FolderStorage"]

from .face_recognition import FaceRecognitionService

__all__ = ["FaceRecognitionService"]

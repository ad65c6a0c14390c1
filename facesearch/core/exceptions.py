"""Custom exceptions for the face folder search service."""
from typing import Optional


class FaceSearchError(Exception):
    """Base exception for face search operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face search error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class InvalidFolderLocatorError(FaceSearchError):
    """Raised when a folder link does not contain a parseable folder id."""
    pass


class StorageError(FaceSearchError):
    """Base exception for remote storage operations."""
    pass


class ListingUnavailableError(StorageError):
    """Raised when a folder listing page cannot be retrieved."""
    pass


class FetchFailedError(StorageError):
    """Raised when the content of a single file cannot be downloaded."""
    pass


class InvalidImageError(FaceSearchError):
    """Raised when the provided image is invalid or cannot be processed."""
    pass


class DecodeFailedError(InvalidImageError):
    """Raised when a downloaded candidate file cannot be decoded as an image."""
    pass


class ExtractionFailedError(FaceSearchError):
    """Raised when the face capability fails on the reference image."""
    pass


class ModelLoadError(FaceSearchError):
    """Raised when the face recognition model fails to load."""
    pass


class ServiceNotInitializedError(FaceSearchError):
    """Raised when a service is requested before the container is initialized."""
    pass


class SessionNotFoundError(FaceSearchError):
    """Raised when a search session id is unknown."""
    pass


class ReferenceSupersededError(FaceSearchError):
    """Raised when a newer reference request replaced one still being extracted."""
    pass

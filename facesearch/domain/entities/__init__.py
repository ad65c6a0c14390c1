"""Domain entities package."""
from .face import BoundingBox, DetectedFace, ReferenceFace
from .files import CandidateFile, ListingPage, MatchResult

__all__ = [
    "BoundingBox",
    "DetectedFace",
    "ReferenceFace",
    "CandidateFile",
    "ListingPage",
    "MatchResult",
]

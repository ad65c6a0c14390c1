"""Value objects package."""
from .recognition import UNKNOWN_LABEL, BestMatch
from .run import (
    AnyRunEvent,
    CompletionEvent,
    FailureEvent,
    ProgressEvent,
    ResultEvent,
    RunEvent,
    RunState,
    TotalEvent,
)

__all__ = [
    "UNKNOWN_LABEL",
    "BestMatch",
    "AnyRunEvent",
    "CompletionEvent",
    "FailureEvent",
    "ProgressEvent",
    "ResultEvent",
    "RunEvent",
    "RunState",
    "TotalEvent",
]

"""Search run value objects: events emitted by the scheduler and the run state."""
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.entities.files import MatchResult

RunStatus = Literal["idle", "running", "completed", "failed"]


class RunEvent(BaseModel):
    """Base class of every event produced for a search run."""
    generation: int = Field(..., description="Generation of the run that produced the event")


class TotalEvent(RunEvent):
    """More image candidates became known while enumerating the folder."""
    kind: Literal["total"] = "total"
    count: int = Field(..., ge=0, description="Number of newly discovered image files")
    final: bool = Field(False, description="Whether enumeration has completed")


class ProgressEvent(RunEvent):
    """One candidate file finished processing, whatever the outcome."""
    kind: Literal["progress"] = "progress"
    file_id: str = Field(..., description="Identifier of the processed file")


class ResultEvent(RunEvent):
    """A candidate file matched the reference face."""
    kind: Literal["result"] = "result"
    result: MatchResult


class CompletionEvent(RunEvent):
    """Every batch finished."""
    kind: Literal["completion"] = "completion"


class FailureEvent(RunEvent):
    """The run stopped because of an error."""
    kind: Literal["failure"] = "failure"
    reason: str = Field(..., description="Human readable failure reason")
    error_type: str = Field(..., description="Name of the error that ended the run")


AnyRunEvent = Union[TotalEvent, ProgressEvent, ResultEvent, CompletionEvent, FailureEvent]


class RunState(BaseModel):
    """State of the current search run, owned by the run aggregator."""
    generation: int = 0
    results: List[MatchResult] = Field(default_factory=list)
    processed_count: int = 0
    total_count: int = 0
    total_final: bool = False
    reference_face: Optional[ReferenceFace] = None
    status: RunStatus = "idle"
    error: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def finished(self) -> bool:
        """Whether the run reached a terminal status."""
        return self.status in ("completed", "failed")

"""API specific search models."""
from typing import List, Optional

from pydantic import BaseModel, Field

from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.entities.files import MatchResult
from facesearch.domain.value_objects.run import RunState, RunStatus


class SessionResponse(BaseModel):
    """Response model for session creation."""
    session_id: str = Field(..., description="Identifier of the new search session")


class ReferenceResponse(BaseModel):
    """Response model for a reference photo upload."""
    face_detected: bool = Field(..., description="Whether a face was found in the photo")
    source_image_ref: Optional[str] = Field(None, description="Name of the uploaded photo")

    @classmethod
    def from_reference(
        cls, reference: Optional[ReferenceFace], source_image_ref: Optional[str]
    ) -> "ReferenceResponse":
        return cls(face_detected=reference is not None, source_image_ref=source_image_ref)


class SearchRequest(BaseModel):
    """Request model for starting a folder search."""
    folder_link: str = Field(
        ...,
        description="Public link of the folder to search",
        min_length=1,
        max_length=2048,
        examples=["https://drive.google.com/drive/folders/XXX"],
    )


class SearchStartedResponse(BaseModel):
    """Response model for a started search."""
    generation: int = Field(..., description="Generation of the started run")


class MatchRecord(BaseModel):
    """API model for one matching photo."""
    file_id: str = Field(..., description="Identifier of the file in remote storage")
    name: str = Field(..., description="File name")
    mime_type: str = Field(..., description="Declared MIME type")
    distance: float = Field(..., description="Descriptor distance of the matching face")
    display_src: str = Field(..., description="Renderable data URI of the photo")

    @classmethod
    def from_result(cls, result: MatchResult) -> "MatchRecord":
        return cls(
            file_id=result.file.id,
            name=result.file.name,
            mime_type=result.file.mime_type,
            distance=result.distance,
            display_src=result.display_src,
        )


class SearchStateResponse(BaseModel):
    """Response model for polling a search."""
    generation: int
    status: RunStatus
    processed_count: int
    total_count: int
    total_final: bool
    error: Optional[str] = None
    has_reference: bool
    matches: List[MatchRecord] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: RunState, has_reference: bool) -> "SearchStateResponse":
        return cls(
            generation=state.generation,
            status=state.status,
            processed_count=state.processed_count,
            total_count=state.total_count,
            total_final=state.total_final,
            error=state.error,
            has_reference=has_reference,
            matches=[MatchRecord.from_result(result) for result in state.results],
        )

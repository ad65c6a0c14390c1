"""Remote file entities produced while searching a folder."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

IMAGE_MIME_PREFIX = "image/"


class CandidateFile(BaseModel):
    """A file record from a remote folder listing."""
    id: str = Field(..., description="Provider-unique file identifier")
    name: str = Field(..., description="Display name of the file")
    mime_type: str = Field("", description="Declared MIME type of the file")

    model_config = ConfigDict(frozen=True)

    @property
    def is_image(self) -> bool:
        """Whether the declared MIME type is image-like."""
        return self.mime_type.startswith(IMAGE_MIME_PREFIX)


class ListingPage(BaseModel):
    """One page of a folder listing."""
    files: List[CandidateFile] = Field(default_factory=list, description="Files on this page")
    next_page_token: Optional[str] = Field(None, description="Opaque token of the next page")


class MatchResult(BaseModel):
    """A candidate file in which the reference face was found."""
    file: CandidateFile = Field(..., description="File the match came from")
    content: bytes = Field(..., description="Raw downloaded file content")
    display_src: str = Field(..., description="Renderable data URI of the image")
    label: str = Field(..., description="Matcher label of the closest detected face")
    distance: float = Field(..., description="Descriptor distance of the closest detected face")

"""Core face domain entities."""
from typing import Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoundingBox(BaseModel):
    """Face bounding box coordinates, relative to the image size (0-1)."""
    left: float = Field(..., description="Left coordinate of the bounding box")
    top: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., description="Width of the bounding box")
    height: float = Field(..., description="Height of the bounding box")


def _as_vector(v: Optional[Union[np.ndarray, list]]) -> Optional[np.ndarray]:
    if v is None:
        return None
    return np.asarray(v, dtype=np.float32)


class DetectedFace(BaseModel):
    """A face found by the face capability, with landmarks and descriptor."""
    confidence: float = Field(..., description="Confidence score of the detection")
    bounding_box: BoundingBox = Field(..., description="Bounding box coordinates")
    descriptor: np.ndarray = Field(..., description="Face descriptor vector")
    landmarks: Optional[np.ndarray] = Field(None, description="Facial landmark points (N x 2)")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("descriptor", "landmarks", mode="before")
    @classmethod
    def validate_vector(cls, v: Optional[Union[np.ndarray, list]]) -> Optional[np.ndarray]:
        """Convert lists to numpy arrays."""
        return _as_vector(v)


class ReferenceFace(BaseModel):
    """The descriptor of the face the user is searching for.

    Replaced wholesale whenever a new reference image is supplied.
    """
    descriptor: np.ndarray = Field(..., description="Reference face descriptor vector")
    source_image_ref: Optional[str] = Field(
        None, description="Display handle of the image the descriptor came from"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @field_validator("descriptor", mode="before")
    @classmethod
    def validate_descriptor(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        """Convert lists to numpy arrays."""
        return _as_vector(v)

"""Face recognition value objects."""
from pydantic import BaseModel, Field

UNKNOWN_LABEL = "unknown"


class BestMatch(BaseModel):
    """Closest descriptor returned by a face matcher query."""
    label: str = Field(..., description="Label of the closest descriptor, or 'unknown'")
    distance: float = Field(..., description="Euclidean distance to the query descriptor")

    @property
    def is_unknown(self) -> bool:
        """Whether the closest descriptor was beyond the distance threshold."""
        return self.label == UNKNOWN_LABEL

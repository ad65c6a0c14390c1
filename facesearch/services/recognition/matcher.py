"""Nearest-neighbour matcher over face descriptors."""
from typing import Optional, Sequence

import numpy as np

from facesearch.domain.value_objects.recognition import UNKNOWN_LABEL, BestMatch


class FaceMatcher:
    """Finds the descriptor closest to a query, within a distance threshold.

    Each descriptor gets a label (``face 1``, ``face 2``, ... unless labels
    are given). Querying returns the label of the closest descriptor, or
    ``unknown`` when even the closest one is farther than the threshold.
    """

    def __init__(
        self,
        descriptors: Sequence[np.ndarray],
        distance_threshold: float,
        labels: Optional[Sequence[str]] = None,
    ) -> None:
        if not len(descriptors):
            raise ValueError("FaceMatcher requires at least one descriptor")
        if labels is not None and len(labels) != len(descriptors):
            raise ValueError("labels and descriptors must have the same length")

        self._descriptors = np.stack([np.asarray(d, dtype=np.float32) for d in descriptors])
        self._labels = list(labels) if labels is not None else [
            f"face {i}" for i in range(1, len(descriptors) + 1)
        ]
        self.distance_threshold = distance_threshold

    def distances(self, descriptor: np.ndarray) -> np.ndarray:
        """Euclidean distance from ``descriptor`` to every known descriptor."""
        query = np.asarray(descriptor, dtype=np.float32)
        if query.shape != self._descriptors.shape[1:]:
            raise ValueError(
                f"Descriptor shape {query.shape} does not match {self._descriptors.shape[1:]}"
            )
        return np.linalg.norm(self._descriptors - query, axis=1)

    def best_match(self, descriptor: np.ndarray) -> BestMatch:
        """Return the closest descriptor, labelled unknown past the threshold."""
        distances = self.distances(descriptor)
        index = int(np.argmin(distances))
        distance = float(distances[index])
        label = self._labels[index] if distance <= self.distance_threshold else UNKNOWN_LABEL
        return BestMatch(label=label, distance=distance)

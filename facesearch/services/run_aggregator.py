"""Run aggregation: the single owner of the current search's state."""
from typing import Optional

from facesearch.core.logging import get_logger
from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.value_objects.run import (
    CompletionEvent,
    FailureEvent,
    ProgressEvent,
    ResultEvent,
    RunEvent,
    RunState,
    TotalEvent,
)

logger = get_logger(__name__)


class RunAggregator:
    """Owns the RunState and is the only component that mutates it.

    Every run gets a new generation. Events tagged with an older generation
    are dropped on arrival, which is what makes starting a new search while
    an old one is still in flight safe.
    """

    def __init__(self) -> None:
        self._state = RunState()

    @property
    def generation(self) -> int:
        return self._state.generation

    def start_run(self, reference: Optional[ReferenceFace]) -> Optional[int]:
        """Start a new run for ``reference`` and return its generation.

        Without a reference this is a no-op and returns None.
        """
        if reference is None:
            logger.debug("Ignoring run start without a reference face")
            return None

        self._state = RunState(
            generation=self._state.generation + 1,
            reference_face=reference,
            status="running",
        )
        logger.info("Search run started", generation=self._state.generation)
        return self._state.generation

    def invalidate(self) -> int:
        """Supersede the current run without starting a new one.

        Results, counters and reference are cleared; events of every earlier
        generation will be dropped.
        """
        self._state = RunState(generation=self._state.generation + 1)
        logger.debug("Search run invalidated", generation=self._state.generation)
        return self._state.generation

    def apply_event(self, event: RunEvent) -> bool:
        """Apply a scheduler event to the current run.

        Returns:
            True if the event was applied, False if it was stale or the run
            had already finished.
        """
        state = self._state
        if event.generation != state.generation:
            logger.debug(
                "Dropping stale event",
                event=type(event).__name__,
                event_generation=event.generation,
                generation=state.generation,
            )
            return False
        if state.status != "running":
            logger.debug("Dropping event for inactive run", event=type(event).__name__)
            return False

        if isinstance(event, TotalEvent):
            state.total_count += event.count
            if event.final:
                state.total_final = True
        elif isinstance(event, ProgressEvent):
            if state.processed_count < state.total_count:
                state.processed_count += 1
            else:
                logger.warning(
                    "Progress beyond known total ignored",
                    file_id=event.file_id,
                    total=state.total_count,
                )
                return False
        elif isinstance(event, ResultEvent):
            state.results.append(event.result)
        elif isinstance(event, CompletionEvent):
            state.status = "completed"
            logger.info(
                "Search run completed",
                generation=state.generation,
                processed=state.processed_count,
                matches=len(state.results),
            )
        elif isinstance(event, FailureEvent):
            state.status = "failed"
            state.error = event.reason
            logger.warning(
                "Search run failed",
                generation=state.generation,
                error_type=event.error_type,
                reason=event.reason,
            )
        else:
            raise TypeError(f"Unsupported run event: {type(event).__name__}")
        return True

    def current_state(self) -> RunState:
        """Return a snapshot of the run state."""
        return self._state.model_copy(update={"results": list(self._state.results)})

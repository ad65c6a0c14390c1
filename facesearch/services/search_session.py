"""Search session: reference handling and run orchestration for one user."""
import asyncio
from typing import Optional, Set

from facesearch.core.exceptions import InvalidFolderLocatorError, ReferenceSupersededError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.value_objects.run import RunState
from facesearch.services.batch_scheduler import BatchScheduler
from facesearch.services.folder_enumerator import parse_folder_id
from facesearch.services.reference_extractor import ReferenceExtractor
from facesearch.services.run_aggregator import RunAggregator

logger = get_logger(__name__)


class FaceSearchSession:
    """Coordinates reference replacement and folder searches.

    A new reference or a new search immediately supersedes whatever is in
    flight. Superseded extractions and runs are not cancelled; their output
    is dropped when it arrives.

    Example:
        ```python
        session = FaceSearchSession(extractor, scheduler)
        await session.set_reference(photo_bytes, "me.jpg")
        await session.submit_search("https://drive.google.com/drive/folders/XYZ")
        await session.wait()
        matches = session.state().results
        ```
    """

    def __init__(
        self,
        extractor: ReferenceExtractor,
        scheduler: BatchScheduler,
        aggregator: Optional[RunAggregator] = None,
    ) -> None:
        self.extractor = extractor
        self.scheduler = scheduler
        self.aggregator = aggregator or RunAggregator()
        self._reference: Optional[ReferenceFace] = None
        self._reference_request = 0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def reference(self) -> Optional[ReferenceFace]:
        return self._reference

    def clear_reference(self) -> None:
        """Forget the reference face and supersede any pending work."""
        self._reference_request += 1
        self._reference = None
        self.aggregator.invalidate()

    async def set_reference(
        self,
        image_bytes: bytes,
        source_image_ref: Optional[str] = None,
    ) -> Optional[ReferenceFace]:
        """Replace the reference face with the one found in ``image_bytes``.

        The previous reference and run are cleared before extraction starts.

        Returns:
            The new reference, or None when the photo has no face

        Raises:
            ExtractionFailedError: If the face capability fails on the photo
            ReferenceSupersededError: If a newer reference request or a clear
                arrived while this photo was being extracted
        """
        self.clear_reference()
        request = self._reference_request

        reference = await self.extractor.extract_reference(image_bytes, source_image_ref)

        if request != self._reference_request:
            logger.info("Dropping superseded reference face", source=source_image_ref)
            raise ReferenceSupersededError(
                "A newer reference photo replaced this one",
                details={"source_image_ref": source_image_ref},
            )

        self._reference = reference
        return reference

    async def submit_search(self, folder_link: str) -> Optional[int]:
        """Start searching ``folder_link`` for the current reference face.

        Returns:
            The generation of the new run, or None when there is no
            reference face.

        Raises:
            InvalidFolderLocatorError: If the link holds no folder id
        """
        if not parse_folder_id(folder_link):
            raise InvalidFolderLocatorError(
                "Folder link does not contain a folder id",
                details={"folder_link": folder_link},
            )

        reference = self._reference
        generation = self.aggregator.start_run(reference)
        if generation is None:
            return None

        task = asyncio.create_task(self._pump(folder_link, reference, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return generation

    async def _pump(self, folder_link: str, reference: ReferenceFace, generation: int) -> None:
        async for event in self.scheduler.run(folder_link, reference, generation):
            self.aggregator.apply_event(event)

    def state(self) -> RunState:
        """Snapshot of the current run."""
        return self.aggregator.current_state()

    @property
    def busy(self) -> bool:
        """Whether any run, current or superseded, is still in flight."""
        return bool(self._tasks)

    async def wait(self) -> None:
        """Wait until every in-flight run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def cancel(self) -> None:
        """Stop every in-flight run and forget the reference and results."""
        self.clear_reference()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Search session cancelled", runs=len(tasks))

    async def close(self) -> None:
        """Let in-flight runs finish before the session is discarded."""
        await self.wait()

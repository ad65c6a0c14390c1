"""Batch scheduling of match evaluations over a remote folder."""
import asyncio
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from facesearch.core.config import settings
from facesearch.core.exceptions import FaceSearchError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.face import ReferenceFace
from facesearch.domain.entities.files import CandidateFile, MatchResult
from facesearch.domain.value_objects.run import (
    CompletionEvent,
    FailureEvent,
    ProgressEvent,
    ResultEvent,
    RunEvent,
    TotalEvent,
)
from facesearch.services.folder_enumerator import FolderEnumerator
from facesearch.services.match_evaluator import MatchEvaluator

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class BatchScheduler:
    """Drives enumeration and evaluation under a concurrency cap and a rate limit.

    Files are evaluated in fixed-size batches. All files of a batch run
    concurrently and the next batch starts only once the whole batch has
    resolved, after a fixed pause. The batch size bounds peak concurrency;
    the pause bounds the sustained request rate against the storage provider.

    The scheduler only produces events. It never touches run state; every
    event carries the generation it was started with.

    Example:
        ```python
        scheduler = BatchScheduler(enumerator, evaluator, batch_size=10, batch_delay=1.0)
        async for event in scheduler.run(folder_link, reference, generation=3):
            aggregator.apply_event(event)
        ```
    """

    def __init__(
        self,
        enumerator: FolderEnumerator,
        evaluator: MatchEvaluator,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            enumerator: Source of candidate files
            evaluator: Per-file match evaluation
            batch_size: Files per concurrent batch, defaults to BATCH_SIZE
            batch_delay: Pause between batches in seconds, defaults to BATCH_DELAY_MS
            sleep: Coroutine used for the pause
        """
        self.enumerator = enumerator
        self.evaluator = evaluator
        self.batch_size = settings.BATCH_SIZE if batch_size is None else batch_size
        self.batch_delay = settings.batch_delay_seconds if batch_delay is None else batch_delay
        self._sleep = sleep

        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.batch_delay < 0:
            raise ValueError("batch_delay must not be negative")

    async def _evaluate_isolated(
        self,
        file: CandidateFile,
        reference: ReferenceFace,
        generation: int,
    ) -> Tuple[CandidateFile, Optional[MatchResult]]:
        """Evaluate one file; any failure counts as a non-match."""
        try:
            return file, await self.evaluator.evaluate(file, reference)
        except FaceSearchError as e:
            logger.warning(
                "Skipping file after evaluation error",
                file_id=file.id,
                name=file.name,
                generation=generation,
                error_type=type(e).__name__,
                error=str(e),
            )
        except Exception as e:
            logger.warning(
                "Unexpected error evaluating file",
                file_id=file.id,
                name=file.name,
                generation=generation,
                error=str(e),
                exc_info=True,
            )
        return file, None

    async def _run_batch(
        self,
        batch: List[CandidateFile],
        reference: ReferenceFace,
        generation: int,
    ) -> AsyncIterator[RunEvent]:
        """Evaluate a batch concurrently, yielding events in completion order."""
        tasks = [
            asyncio.ensure_future(self._evaluate_isolated(file, reference, generation))
            for file in batch
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                file, result = await next_done
                if result is not None:
                    yield ResultEvent(generation=generation, result=result)
                yield ProgressEvent(generation=generation, file_id=file.id)
        finally:
            # Only reached early if the consumer stops iterating
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def run(
        self,
        folder_link: str,
        reference: ReferenceFace,
        generation: int,
    ) -> AsyncIterator[RunEvent]:
        """Search a folder for the reference face.

        Yields, in order: a TotalEvent per listing page, a ResultEvent and/or
        ProgressEvent per evaluated file as it resolves, and finally exactly
        one CompletionEvent or FailureEvent.

        Args:
            folder_link: Shareable link of the folder to search
            reference: Face being searched for
            generation: Generation token attached to every event
        """
        log = logger.bind(generation=generation)
        pending: List[CandidateFile] = []
        batches_started = 0
        failure: Optional[FaceSearchError] = None
        pages = self.enumerator.iter_pages(folder_link)

        log.info("Starting folder search", batch_size=self.batch_size, batch_delay=self.batch_delay)
        try:
            while True:
                try:
                    page = await pages.__anext__()
                except StopAsyncIteration:
                    yield TotalEvent(generation=generation, count=0, final=True)
                    break
                except FaceSearchError as e:
                    failure = e
                    break

                yield TotalEvent(generation=generation, count=len(page), final=False)
                pending.extend(page)

                while len(pending) >= self.batch_size:
                    batch, pending = pending[:self.batch_size], pending[self.batch_size:]
                    if batches_started:
                        await self._sleep(self.batch_delay)
                    batches_started += 1
                    log.debug("Dispatching batch", batch=batches_started, size=len(batch))
                    async for event in self._run_batch(batch, reference, generation):
                        yield event

            # Files already enumerated are processed even if a later page failed
            if pending:
                if batches_started:
                    await self._sleep(self.batch_delay)
                batches_started += 1
                log.debug("Dispatching batch", batch=batches_started, size=len(pending))
                async for event in self._run_batch(pending, reference, generation):
                    yield event
                pending = []
        finally:
            await pages.aclose()

        if failure is not None:
            log.error(
                "Folder search failed",
                error_type=type(failure).__name__,
                error=str(failure),
            )
            yield FailureEvent(
                generation=generation,
                reason=str(failure),
                error_type=type(failure).__name__,
            )
            return

        log.info("Folder search completed", batches=batches_started)
        yield CompletionEvent(generation=generation)

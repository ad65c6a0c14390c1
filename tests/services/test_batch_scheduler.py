"""Tests for batch scheduling of match evaluations."""
import asyncio

import pytest

from facesearch.domain.value_objects.run import (
    CompletionEvent,
    FailureEvent,
    ProgressEvent,
    ResultEvent,
    TotalEvent,
)
from facesearch.services.batch_scheduler import BatchScheduler
from facesearch.services.folder_enumerator import FolderEnumerator
from facesearch.services.match_evaluator import MatchEvaluator
from facesearch.services.run_aggregator import RunAggregator
from tests.fakes import FakeStorage, image_bytes, image_file, make_face, make_reference


def build_scheduler(storage, face_service, sleep, batch_size=10, batch_delay=1.0):
    return BatchScheduler(
        FolderEnumerator(storage, page_size=100),
        MatchEvaluator(storage, face_service, min_confidence=0.3, distance_threshold=0.5),
        batch_size=batch_size,
        batch_delay=batch_delay,
        sleep=sleep,
    )


async def collect(scheduler, folder_link, generation=1, reference=None):
    reference = reference if reference is not None else make_reference(0)
    return [event async for event in scheduler.run(folder_link, reference, generation)]


class TestBatchScheduler:
    """Batching, ordering, isolation and termination of a run."""

    async def test_twenty_five_files_three_matches(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep)
        aggregator = RunAggregator()
        generation = aggregator.start_run(make_reference(0))

        events = await collect(scheduler, folder_link, generation)
        for event in events:
            aggregator.apply_event(event)

        state = aggregator.current_state()
        assert sorted(r.file.id for r in state.results) == ["file-03", "file-14", "file-25"]
        assert state.processed_count == 25
        assert state.total_count == 25
        assert state.total_final
        assert state.status == "completed"
        assert recording_sleep.delays == [1.0, 1.0]
        assert isinstance(events[-1], CompletionEvent)
        assert all(event.generation == generation for event in events)

    async def test_non_image_files_are_never_downloaded(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep)

        await collect(scheduler, folder_link)

        assert "doc-1" not in folder_with_matches.downloads
        assert "dir-1" not in folder_with_matches.downloads
        assert len(folder_with_matches.downloads) == 25

    async def test_concurrency_is_bounded_by_batch_size(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        folder_with_matches.download_delay = 0.01
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep, batch_size=4)

        events = await collect(scheduler, folder_link)

        assert folder_with_matches.max_in_flight == 4
        assert len([e for e in events if isinstance(e, ProgressEvent)]) == 25
        assert len(recording_sleep.delays) == 6

    async def test_batches_never_overlap(self, face_service, recording_sleep, folder_link):
        files = [image_file(i) for i in range(1, 7)]
        storage = FakeStorage(pages=[files])
        for index, file in enumerate(files, start=1):
            storage.add_file(file, image_bytes(index))
        scheduler = build_scheduler(storage, face_service, recording_sleep, batch_size=3)

        events = await collect(scheduler, folder_link)

        progress = [e.file_id for e in events if isinstance(e, ProgressEvent)]
        assert set(progress[:3]) == {"file-01", "file-02", "file-03"}
        assert set(progress[3:]) == {"file-04", "file-05", "file-06"}

    async def test_results_stream_in_completion_order(self, face_service, recording_sleep, folder_link):
        class SlowFirstStorage(FakeStorage):
            async def download_content(self, file_id):
                if file_id == "file-01":
                    await asyncio.sleep(0.2)
                return await super().download_content(file_id)

        files = [image_file(1), image_file(2)]
        storage = SlowFirstStorage(pages=[files])
        for index, file in enumerate(files, start=1):
            storage.add_file(file, image_bytes(index))
            face_service.faces[index] = [make_face(0)]
        scheduler = build_scheduler(storage, face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        results = [e.result.file.id for e in events if isinstance(e, ResultEvent)]
        assert results == ["file-02", "file-01"]

    async def test_result_is_emitted_before_its_progress(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        for index, event in enumerate(events):
            if isinstance(event, ResultEvent):
                following = events[index + 1]
                assert isinstance(following, ProgressEvent)
                assert following.file_id == event.result.file.id

    async def test_file_errors_are_isolated(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        folder_with_matches.fail_downloads.add("file-03")
        folder_with_matches.contents["file-14"] = b"corrupt"
        face_service.failing.add(25)
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        assert not [e for e in events if isinstance(e, ResultEvent)]
        assert len([e for e in events if isinstance(e, ProgressEvent)]) == 25
        assert isinstance(events[-1], CompletionEvent)

    async def test_invalid_link_fails_without_listing(self, face_service, recording_sleep):
        storage = FakeStorage(pages=[[image_file(1)]])
        scheduler = build_scheduler(storage, face_service, recording_sleep)

        events = await collect(scheduler, "https://example.com/shared")

        assert len(events) == 1
        assert isinstance(events[0], FailureEvent)
        assert events[0].error_type == "InvalidFolderLocatorError"
        assert storage.list_calls == []

    async def test_first_page_failure_is_terminal(self, face_service, recording_sleep, folder_link):
        storage = FakeStorage(pages=[[image_file(1)]])
        storage.fail_page = 0
        scheduler = build_scheduler(storage, face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        assert len(events) == 1
        assert isinstance(events[0], FailureEvent)
        assert events[0].error_type == "ListingUnavailableError"
        assert storage.downloads == []

    async def test_second_page_failure_keeps_first_page_results(
        self, face_service, recording_sleep, folder_link
    ):
        first_page = [image_file(1), image_file(2)]
        storage = FakeStorage(pages=[first_page, [image_file(3)]])
        storage.fail_page = 1
        for index, file in enumerate(first_page, start=1):
            storage.add_file(file, image_bytes(index))
        face_service.faces[2] = [make_face(0)]
        scheduler = build_scheduler(storage, face_service, recording_sleep)
        aggregator = RunAggregator()
        generation = aggregator.start_run(make_reference(0))

        events = await collect(scheduler, folder_link, generation)
        for event in events:
            aggregator.apply_event(event)

        state = aggregator.current_state()
        assert isinstance(events[-1], FailureEvent)
        assert state.status == "failed"
        assert "page 1" in state.error
        assert [r.file.id for r in state.results] == ["file-02"]
        assert state.processed_count == state.total_count == 2
        assert not state.total_final

    async def test_totals_are_reported_per_page(
        self, folder_with_matches, face_service, recording_sleep, folder_link
    ):
        scheduler = build_scheduler(folder_with_matches, face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        totals = [(e.count, e.final) for e in events if isinstance(e, TotalEvent)]
        assert totals == [(12, False), (13, False), (0, True)]

    async def test_single_batch_has_no_delay(self, face_service, recording_sleep, folder_link):
        storage = FakeStorage(pages=[[image_file(1)]])
        storage.add_file(image_file(1), image_bytes(1))
        scheduler = build_scheduler(storage, face_service, recording_sleep)

        await collect(scheduler, folder_link)

        assert recording_sleep.delays == []

    async def test_empty_folder_completes(self, face_service, recording_sleep, folder_link):
        scheduler = build_scheduler(FakeStorage(), face_service, recording_sleep)

        events = await collect(scheduler, folder_link)

        assert [type(e) for e in events] == [TotalEvent, TotalEvent, CompletionEvent]

    def test_rejects_invalid_knobs(self, face_service, recording_sleep):
        with pytest.raises(ValueError):
            build_scheduler(FakeStorage(), face_service, recording_sleep, batch_delay=-1)

    def test_explicit_zero_batch_size_is_rejected(self, face_service, recording_sleep):
        with pytest.raises(ValueError):
            build_scheduler(FakeStorage(), face_service, recording_sleep, batch_size=0)

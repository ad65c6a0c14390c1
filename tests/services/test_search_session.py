"""Tests for reference replacement and run supersession in a search session."""
import asyncio

import pytest

from facesearch.core.exceptions import (
    ExtractionFailedError,
    InvalidFolderLocatorError,
    ReferenceSupersededError,
)
from facesearch.services.batch_scheduler import BatchScheduler
from facesearch.services.folder_enumerator import FolderEnumerator
from facesearch.services.match_evaluator import MatchEvaluator
from facesearch.services.reference_extractor import ReferenceExtractor
from facesearch.services.search_session import FaceSearchSession
from tests.fakes import FakeStorage, image_bytes, image_file, make_face

# Markers of the reference photos; folder photos use markers 1-20
PHOTO_A = 101
PHOTO_B = 102


@pytest.fixture
def storage(face_service):
    """20 photos: odd ones contain face A (axis 0), even ones face B (axis 1)."""
    files = [image_file(i) for i in range(1, 21)]
    storage = FakeStorage(pages=[files[:10], files[10:]])
    for index, file in enumerate(files, start=1):
        storage.add_file(file, image_bytes(index))
        face_service.faces[index] = [make_face(1 - index % 2)]
    face_service.faces[PHOTO_A] = [make_face(0)]
    face_service.faces[PHOTO_B] = [make_face(1)]
    return storage


@pytest.fixture
def session(storage, face_service, recording_sleep):
    scheduler = BatchScheduler(
        FolderEnumerator(storage),
        MatchEvaluator(storage, face_service, min_confidence=0.3, distance_threshold=0.5),
        batch_size=5,
        batch_delay=0.0,
        sleep=recording_sleep,
    )
    return FaceSearchSession(ReferenceExtractor(face_service), scheduler)


class TestFaceSearchSession:
    """End-to-end behavior of a session over fake collaborators."""

    async def test_search_collects_matches(self, session, folder_link):
        await session.set_reference(image_bytes(PHOTO_A), "a.png")

        generation = await session.submit_search(folder_link)
        await session.wait()

        state = session.state()
        assert state.generation == generation
        assert state.status == "completed"
        assert sorted(r.file.id for r in state.results) == [
            f"file-{i:02d}" for i in range(1, 21, 2)
        ]
        assert state.processed_count == state.total_count == 20

    async def test_search_without_reference_is_noop(self, session, storage, folder_link):
        assert await session.submit_search(folder_link) is None
        assert not session.busy
        assert storage.list_calls == []

    async def test_photo_without_face_leaves_reference_absent(self, session, folder_link):
        assert await session.set_reference(image_bytes(55)) is None
        assert session.reference is None
        assert await session.submit_search(folder_link) is None

    async def test_invalid_link_is_rejected_before_any_call(self, session, storage):
        await session.set_reference(image_bytes(PHOTO_A))

        with pytest.raises(InvalidFolderLocatorError):
            await session.submit_search("https://example.com/shared")
        assert storage.list_calls == []

    async def test_new_reference_and_search_supersede_running_search(
        self, session, storage, folder_link
    ):
        storage.download_delay = 0.01
        await session.set_reference(image_bytes(PHOTO_A), "a.png")
        first = await session.submit_search(folder_link)
        await asyncio.sleep(0.015)

        await session.set_reference(image_bytes(PHOTO_B), "b.png")
        second = await session.submit_search(folder_link)
        await session.wait()

        state = session.state()
        assert second > first
        assert state.generation == second
        assert state.status == "completed"
        assert sorted(r.file.id for r in state.results) == [
            f"file-{i:02d}" for i in range(2, 21, 2)
        ]
        assert state.processed_count == state.total_count == 20
        assert state.reference_face.source_image_ref == "b.png"

    async def test_resubmitting_restarts_the_count(self, session, storage, folder_link):
        storage.download_delay = 0.01
        await session.set_reference(image_bytes(PHOTO_A))
        await session.submit_search(folder_link)
        await asyncio.sleep(0.015)

        await session.submit_search(folder_link)
        await session.wait()

        state = session.state()
        assert state.processed_count == state.total_count == 20
        assert len(state.results) == 10

    async def test_reference_change_clears_results(self, session, folder_link):
        await session.set_reference(image_bytes(PHOTO_A))
        await session.submit_search(folder_link)
        await session.wait()

        await session.set_reference(image_bytes(PHOTO_B))

        state = session.state()
        assert state.results == []
        assert state.status == "idle"

    async def test_slow_extraction_is_dropped_when_superseded(self, session, face_service):
        gate = asyncio.Event()
        face_service.gates[PHOTO_A] = gate

        slow = asyncio.create_task(session.set_reference(image_bytes(PHOTO_A), "a.png"))
        await asyncio.sleep(0.01)
        fast = await session.set_reference(image_bytes(PHOTO_B), "b.png")
        gate.set()

        with pytest.raises(ReferenceSupersededError):
            await slow
        assert fast is not None
        assert session.reference.source_image_ref == "b.png"

    async def test_slow_extraction_is_dropped_after_clear(self, session, face_service):
        gate = asyncio.Event()
        face_service.gates[PHOTO_A] = gate

        slow = asyncio.create_task(session.set_reference(image_bytes(PHOTO_A)))
        await asyncio.sleep(0.01)
        session.clear_reference()
        gate.set()

        with pytest.raises(ReferenceSupersededError):
            await slow
        assert session.reference is None

    async def test_failed_extraction_clears_previous_reference(self, session, face_service):
        await session.set_reference(image_bytes(PHOTO_A))
        face_service.failing.add(PHOTO_B)

        with pytest.raises(ExtractionFailedError):
            await session.set_reference(image_bytes(PHOTO_B))
        assert session.reference is None

    async def test_cancel_stops_running_search(self, session, storage, folder_link):
        storage.download_delay = 0.05
        await session.set_reference(image_bytes(PHOTO_A))
        await session.submit_search(folder_link)
        await asyncio.sleep(0.01)

        await session.cancel()

        state = session.state()
        assert not session.busy
        assert session.reference is None
        assert state.status == "idle"
        assert state.results == []
        assert len(storage.downloads) < 20

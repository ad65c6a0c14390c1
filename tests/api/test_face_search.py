"""Tests for the face search HTTP API."""
import asyncio
import io
import time
import zipfile

import pytest
from fastapi.testclient import TestClient

from facesearch.core.container import container
from facesearch.core.exceptions import ReferenceSupersededError
from facesearch.main import app
from tests.fakes import image_bytes, make_face

API = "/api/v1/face-search"
REFERENCE_MARKER = 200


@pytest.fixture
def client(folder_with_matches, face_service):
    face_service.faces[REFERENCE_MARKER] = [make_face(0)]
    asyncio.run(container.initialize(storage=folder_with_matches, face_service=face_service))
    container.batch_scheduler.batch_delay = 0.0

    with TestClient(app) as test_client:
        yield test_client

    assert not container.initialized
    assert folder_with_matches.closed


@pytest.fixture
def session_id(client):
    response = client.post(f"{API}/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


def upload(client, session_id, marker, filename="me.png"):
    return client.put(
        f"{API}/sessions/{session_id}/reference",
        files={"file": (filename, image_bytes(marker), "image/png")},
    )


def wait_for_run(client, session_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        state = client.get(f"{API}/sessions/{session_id}/search").json()
        if state["status"] != "running" or time.monotonic() > deadline:
            return state
        time.sleep(0.01)


class TestFaceSearchAPI:
    """Session lifecycle over HTTP."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_unknown_session_is_404(self, client):
        response = client.get(f"{API}/sessions/missing/search")

        assert response.status_code == 404

    def test_new_session_is_idle(self, client, session_id):
        state = client.get(f"{API}/sessions/{session_id}/search").json()

        assert state["status"] == "idle"
        assert state["has_reference"] is False
        assert state["matches"] == []

    def test_upload_reference_with_face(self, client, session_id):
        response = upload(client, session_id, REFERENCE_MARKER)

        assert response.status_code == 200
        assert response.json() == {"face_detected": True, "source_image_ref": "me.png"}

    def test_upload_reference_without_face(self, client, session_id):
        response = upload(client, session_id, 201)

        assert response.status_code == 200
        assert response.json()["face_detected"] is False

    def test_upload_corrupt_reference_is_422(self, client, session_id):
        response = client.put(
            f"{API}/sessions/{session_id}/reference",
            files={"file": ("me.png", b"not an image", "image/png")},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Cannot detect face in selected photo."

    def test_search_without_reference_is_409(self, client, session_id, folder_link):
        response = client.post(
            f"{API}/sessions/{session_id}/search", json={"folder_link": folder_link}
        )

        assert response.status_code == 409

    def test_invalid_folder_link_is_400(self, client, session_id, folder_with_matches):
        upload(client, session_id, REFERENCE_MARKER)

        response = client.post(
            f"{API}/sessions/{session_id}/search",
            json={"folder_link": "https://example.com/not-a-folder"},
        )

        assert response.status_code == 400
        assert folder_with_matches.list_calls == []

    def test_search_and_download_matches(self, client, session_id, folder_link):
        upload(client, session_id, REFERENCE_MARKER)

        response = client.post(
            f"{API}/sessions/{session_id}/search", json={"folder_link": folder_link}
        )
        assert response.status_code == 202
        generation = response.json()["generation"]

        state = wait_for_run(client, session_id)
        assert state["generation"] == generation
        assert state["status"] == "completed"
        assert state["processed_count"] == state["total_count"] == 25
        assert state["total_final"] is True
        assert sorted(m["file_id"] for m in state["matches"]) == ["file-03", "file-14", "file-25"]
        assert all(m["display_src"].startswith("data:image/") for m in state["matches"])

        archive = client.get(f"{API}/sessions/{session_id}/search/archive")
        assert archive.status_code == 200
        assert archive.headers["content-type"] == "application/zip"
        assert 'filename="images.zip"' in archive.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(archive.content)) as bundle:
            assert sorted(bundle.namelist()) == [
                "images/photo_03.jpg",
                "images/photo_14.jpg",
                "images/photo_25.jpg",
            ]

    def test_clearing_reference_resets_state(self, client, session_id, folder_link):
        upload(client, session_id, REFERENCE_MARKER)
        client.post(f"{API}/sessions/{session_id}/search", json={"folder_link": folder_link})
        wait_for_run(client, session_id)

        response = client.delete(f"{API}/sessions/{session_id}/reference")

        assert response.status_code == 204
        state = client.get(f"{API}/sessions/{session_id}/search").json()
        assert state["status"] == "idle"
        assert state["matches"] == []
        assert state["has_reference"] is False

    def test_deleted_session_is_404(self, client, session_id):
        response = client.delete(f"{API}/sessions/{session_id}")

        assert response.status_code == 204
        assert session_id not in container.sessions
        assert client.get(f"{API}/sessions/{session_id}/search").status_code == 404
        assert client.delete(f"{API}/sessions/{session_id}").status_code == 404

    def test_deleting_session_stops_its_search(
        self, client, session_id, folder_link, folder_with_matches
    ):
        folder_with_matches.download_delay = 0.05
        upload(client, session_id, REFERENCE_MARKER)
        client.post(f"{API}/sessions/{session_id}/search", json={"folder_link": folder_link})

        response = client.delete(f"{API}/sessions/{session_id}")

        assert response.status_code == 204
        assert len(folder_with_matches.downloads) < 25

    def test_superseded_reference_upload_is_409(self, client, session_id, monkeypatch):
        session = container.sessions[session_id]

        async def superseded(content, source_image_ref=None):
            raise ReferenceSupersededError("A newer reference photo replaced this one")

        monkeypatch.setattr(session, "set_reference", superseded)

        response = upload(client, session_id, REFERENCE_MARKER)

        assert response.status_code == 409
        assert response.json()["detail"] == "Superseded by a newer reference photo."

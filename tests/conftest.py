"""Shared fixtures."""
import pytest

from facesearch.domain.entities.files import CandidateFile
from tests.fakes import (
    FOLDER_LINK,
    FakeFaceService,
    FakeStorage,
    RecordingSleep,
    image_bytes,
    image_file,
    make_face,
)


@pytest.fixture
def folder_link() -> str:
    return FOLDER_LINK


@pytest.fixture
def face_service() -> FakeFaceService:
    return FakeFaceService()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def folder_with_matches(face_service):
    """25 photos plus 2 non-image files; photos 3, 14 and 25 contain face 0."""
    files = [image_file(i) for i in range(1, 26)]
    documents = [
        CandidateFile(id="doc-1", name="notes.pdf", mime_type="application/pdf"),
        CandidateFile(id="dir-1", name="raw", mime_type="application/vnd.google-apps.folder"),
    ]
    storage = FakeStorage(pages=[files[:12] + documents[:1], files[12:] + documents[1:]])
    for index, file in enumerate(files, start=1):
        storage.add_file(file, image_bytes(index))
        if index in (3, 14, 25):
            face_service.faces[index] = [make_face(1, 0.8), make_face(0, 0.95)]
        elif index % 2 == 0:
            face_service.faces[index] = [make_face(1)]
    return storage

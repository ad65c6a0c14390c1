"""Packaging of matched photos into a downloadable zip archive."""
import io
import posixpath
import zipfile
from typing import Dict, Optional, Sequence

from facesearch.core.config import settings
from facesearch.core.logging import get_logger
from facesearch.domain.entities.files import MatchResult

logger = get_logger(__name__)


def _unique_name(name: str, used: Dict[str, int]) -> str:
    """Return ``name``, or ``stem (n).ext`` if it was already used."""
    base = posixpath.basename(name.replace("\\", "/")) or "image"
    if base not in used:
        used[base] = 0
        return base

    stem, ext = posixpath.splitext(base)
    while True:
        used[base] += 1
        candidate = f"{stem} ({used[base]}){ext}"
        if candidate not in used:
            used[candidate] = 0
            return candidate


def build_archive(results: Sequence[MatchResult], folder: Optional[str] = None) -> bytes:
    """Zip the content of every match under ``folder/``.

    Args:
        results: Matches of a search run
        folder: Directory inside the archive, defaults to ARCHIVE_FOLDER

    Returns:
        The zip archive as bytes
    """
    folder = (folder if folder is not None else settings.ARCHIVE_FOLDER).strip("/")
    used: Dict[str, int] = {}
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for result in results:
            name = _unique_name(result.file.name, used)
            arcname = f"{folder}/{name}" if folder else name
            archive.writestr(arcname, result.content)

    logger.info("Built match archive", files=len(results), size=buffer.tell())
    return buffer.getvalue()

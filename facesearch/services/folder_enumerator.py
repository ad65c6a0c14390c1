"""Folder enumeration: from a shareable folder link to a stream of image files."""
import re
from typing import AsyncIterator, List, Optional

from facesearch.core.config import settings
from facesearch.core.exceptions import InvalidFolderLocatorError, ListingUnavailableError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.files import CandidateFile
from facesearch.domain.interfaces.storage.folder_storage import FolderStorage

logger = get_logger(__name__)

FOLDER_ID_PATTERN = re.compile(r"folders/([^?/]+)")


def parse_folder_id(folder_link: str) -> str:
    """Extract the folder id following ``folders/`` in a shareable link.

    The id runs up to the next ``/`` or ``?``. Returns an empty string when
    the link has no such segment.

    Example:
        >>> parse_folder_id("https://drive.google.com/drive/folders/XYZ123?usp=sharing")
        'XYZ123'
    """
    match = FOLDER_ID_PATTERN.search(folder_link or "")
    return match.group(1) if match else ""


class FolderEnumerator:
    """Paginates a storage listing into image candidate files.

    The sequence is lazy: a page is only requested once the previous one has
    been consumed. Iteration is not restartable; enumerating again fetches
    from the first page.
    """

    def __init__(self, storage: FolderStorage, page_size: Optional[int] = None) -> None:
        self.storage = storage
        self.page_size = settings.LISTING_PAGE_SIZE if page_size is None else page_size
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")

    async def iter_pages(self, folder_link: str) -> AsyncIterator[List[CandidateFile]]:
        """Yield the image files of each listing page, in provider order.

        Raises:
            InvalidFolderLocatorError: If the link holds no folder id. No
                storage call is made in that case.
            ListingUnavailableError: If a page cannot be listed. Pages
                yielded before the failure stay yielded.
        """
        folder_id = parse_folder_id(folder_link)
        if not folder_id:
            raise InvalidFolderLocatorError(
                "Folder link does not contain a folder id",
                details={"folder_link": folder_link},
            )

        page_token: Optional[str] = None
        page_number = 0
        while True:
            page_number += 1
            try:
                page = await self.storage.list_children(folder_id, page_token, self.page_size)
            except ListingUnavailableError:
                raise
            except Exception as e:
                raise ListingUnavailableError(
                    f"Listing page {page_number} of folder '{folder_id}' failed: {e}",
                    details={"folder_id": folder_id, "page": page_number},
                ) from e

            images = [file for file in page.files if file.is_image]
            skipped = len(page.files) - len(images)
            if skipped:
                logger.debug("Skipped non-image files", folder_id=folder_id, count=skipped)
            logger.debug(
                "Enumerated folder page",
                folder_id=folder_id,
                page=page_number,
                images=len(images),
            )
            yield images

            page_token = page.next_page_token
            if not page_token:
                return

    async def enumerate(self, folder_link: str) -> AsyncIterator[CandidateFile]:
        """Yield every image file of the folder as a flat sequence."""
        async for page in self.iter_pages(folder_link):
            for file in page:
                yield file

"""Remote folder storage interface."""
from abc import ABC, abstractmethod
from typing import Optional

from ...entities.files import ListingPage


class FolderStorage(ABC):
    """Interface for listing a remote folder and downloading its files."""

    @abstractmethod
    async def list_children(
        self,
        folder_id: str,
        page_token: Optional[str] = None,
        page_size: int = 100,
    ) -> ListingPage:
        """
        List one page of the files whose parent is ``folder_id``.

        Args:
            folder_id: Provider-specific folder identifier
            page_token: Token returned by the previous page, None for the first page
            page_size: Maximum number of entries on the page

        Returns:
            ListingPage with the files and the token of the next page, if any

        Raises:
            ListingUnavailableError: If the listing call fails
        """
        pass

    @abstractmethod
    async def download_content(self, file_id: str) -> bytes:
        """
        Download the raw content of a file.

        Args:
            file_id: Provider-unique file identifier

        Returns:
            File contents as bytes

        Raises:
            FetchFailedError: If the file cannot be downloaded
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the storage client."""
        return None

"""
Google Drive folder storage using the Drive v3 REST API over httpx.

Public folders are read with an API key: listing goes through
``GET /files?q='<folder>' in parents`` and content through
``GET /files/<id>?alt=media``.
"""
from typing import Any, Dict, Optional

import httpx

from facesearch.core.config import settings
from facesearch.core.exceptions import FetchFailedError, ListingUnavailableError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.files import CandidateFile, ListingPage
from facesearch.domain.interfaces.storage.folder_storage import FolderStorage

logger = get_logger(__name__)

LISTING_FIELDS = "nextPageToken,files(id,name,mimeType)"


class GoogleDriveStorage(FolderStorage):
    """Folder storage backed by Google Drive."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Store configuration; the HTTP client is created on first use.

        Args:
            api_key: Google API key, defaults to GOOGLE_API_KEY
            base_url: Drive API base URL, defaults to DRIVE_API_URL
            timeout: Request timeout in seconds
            client: Preconfigured client, mostly for tests
        """
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.base_url = (base_url or settings.DRIVE_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            logger.debug("Creating Drive HTTP client", base_url=self.base_url)
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self._client

    def _params(self, **extra: Any) -> Dict[str, Any]:
        params = {k: v for k, v in extra.items() if v is not None}
        if self.api_key:
            params["key"] = self.api_key
        return params

    async def list_children(
        self,
        folder_id: str,
        page_token: Optional[str] = None,
        page_size: int = 100,
    ) -> ListingPage:
        """List one page of a Drive folder."""
        params = self._params(
            q=f"'{folder_id}' in parents and trashed=false",
            pageSize=page_size,
            pageToken=page_token,
            fields=LISTING_FIELDS,
            supportsAllDrives="true",
            includeItemsFromAllDrives="true",
        )
        try:
            response = await self._get_client().get(f"{self.base_url}/files", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Drive listing rejected",
                folder_id=folder_id,
                status_code=e.response.status_code,
            )
            raise ListingUnavailableError(
                f"Drive listing for folder '{folder_id}' failed with status {e.response.status_code}",
                details={"folder_id": folder_id, "status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Drive listing failed", folder_id=folder_id, error=str(e))
            raise ListingUnavailableError(
                f"Drive listing for folder '{folder_id}' failed: {e}",
                details={"folder_id": folder_id},
            ) from e

        files = [
            CandidateFile(
                id=item["id"],
                name=item.get("name", item["id"]),
                mime_type=item.get("mimeType", ""),
            )
            for item in payload.get("files", [])
            if item.get("id")
        ]
        logger.debug("Listed Drive folder page", folder_id=folder_id, count=len(files))
        return ListingPage(files=files, next_page_token=payload.get("nextPageToken") or None)

    async def download_content(self, file_id: str) -> bytes:
        """Download the raw content of a Drive file."""
        try:
            response = await self._get_client().get(
                f"{self.base_url}/files/{file_id}",
                params=self._params(alt="media", supportsAllDrives="true"),
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchFailedError(
                f"Download of file '{file_id}' failed with status {e.response.status_code}",
                details={"file_id": file_id, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise FetchFailedError(
                f"Download of file '{file_id}' failed: {e}",
                details={"file_id": file_id},
            ) from e
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed Drive HTTP client")

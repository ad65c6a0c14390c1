"""
S3 folder storage using aioboto3.

A "folder" is a key prefix inside the configured bucket: folder id ``abc``
lists the objects directly under ``abc/``. File ids are object keys.
"""
import mimetypes
import posixpath
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from facesearch.core.config import settings
from facesearch.core.exceptions import FetchFailedError, ListingUnavailableError, StorageError
from facesearch.core.logging import get_logger
from facesearch.domain.entities.files import CandidateFile, ListingPage
from facesearch.domain.interfaces.storage.folder_storage import FolderStorage

logger = get_logger(__name__)


class S3FolderStorage(FolderStorage):
    """Folder storage backed by an S3 bucket."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None
    ):
        """Store configuration but do not initialize client yet."""
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET
        self.region_name = region_name or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self._session = aioboto3.Session()

    @asynccontextmanager
    async def _get_client(self) -> AsyncGenerator[Any, None]:
        """Async context manager yielding an S3 client."""
        client_args: Dict[str, Any] = {'region_name': self.region_name or "us-east-1"}
        if self.access_key_id and self.secret_access_key:
            client_args['aws_access_key_id'] = self.access_key_id
            client_args['aws_secret_access_key'] = self.secret_access_key
        else:
            logger.debug("Allowing aioboto3 to discover AWS credentials automatically")

        try:
            async with self._session.client("s3", **client_args) as s3:
                yield s3
        except NoCredentialsError as e:
            logger.error(f"Failed to initialize S3: AWS credentials not found. {e}")
            raise StorageError("AWS credentials not found or configured correctly.") from e

    @staticmethod
    def _prefix(folder_id: str) -> str:
        return folder_id.strip("/") + "/"

    async def list_children(
        self,
        folder_id: str,
        page_token: Optional[str] = None,
        page_size: int = 100,
    ) -> ListingPage:
        """List one page of objects directly under the folder prefix."""
        request: Dict[str, Any] = {
            'Bucket': self.bucket_name,
            'Prefix': self._prefix(folder_id),
            'Delimiter': '/',
            'MaxKeys': page_size,
        }
        if page_token:
            request['ContinuationToken'] = page_token

        try:
            async with self._get_client() as s3:
                page = await s3.list_objects_v2(**request)
        except (ClientError, BotoCoreError, StorageError) as e:
            logger.error("Failed to list S3 folder", prefix=request['Prefix'], error=str(e))
            raise ListingUnavailableError(
                f"Failed to list objects with prefix '{request['Prefix']}': {e}",
                details={"folder_id": folder_id},
            ) from e

        files = []
        for obj in page.get('Contents', []):
            key = obj['Key']
            if key.endswith('/'):
                continue
            mime_type, _ = mimetypes.guess_type(key)
            files.append(CandidateFile(
                id=key,
                name=posixpath.basename(key),
                mime_type=mime_type or "application/octet-stream",
            ))

        next_token = page.get('NextContinuationToken') if page.get('IsTruncated') else None
        logger.debug("Listed S3 folder page", prefix=request['Prefix'], count=len(files))
        return ListingPage(files=files, next_page_token=next_token)

    async def download_content(self, file_id: str) -> bytes:
        """Get object contents from S3."""
        try:
            async with self._get_client() as s3:
                response = await s3.get_object(Bucket=self.bucket_name, Key=file_id)
                return await response['Body'].read()
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code == 'NoSuchKey':
                logger.warning(f"File not found in S3: {self.bucket_name}/{file_id}")
                raise FetchFailedError(f"File not found: {file_id}") from e
            raise FetchFailedError(
                f"Failed to retrieve file '{file_id}' due to S3 error: {e}"
            ) from e
        except (BotoCoreError, StorageError) as e:
            raise FetchFailedError(f"Unexpected error retrieving file: {file_id}") from e

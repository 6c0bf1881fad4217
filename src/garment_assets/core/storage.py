"""S3-compatible remote asset store used by the upload coordinator."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import UploadFailureError
from .logging_config import get_logger
from .models import AssetStoreSettings
from .protocols import AssetStoreClientProtocol

# S3 DeleteObjects accepts at most this many keys per request.
MAX_DELETE_BATCH = 1000


class S3AssetStore:
    """Puts and deletes variant objects in one bucket and builds their public URLs."""

    def __init__(self, client: AssetStoreClientProtocol, settings: AssetStoreSettings):
        self._client = client
        self._settings = settings
        self._logger = get_logger("storage")

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    def public_url(self, key: str) -> str:
        settings = self._settings
        if settings.public_base_url:
            return f"{settings.public_base_url.rstrip('/')}/{key}"
        if settings.endpoint_url:
            return f"{settings.endpoint_url.rstrip('/')}/{settings.bucket}/{key}"
        if settings.region:
            return f"https://{settings.bucket}.s3.{settings.region}.amazonaws.com/{key}"
        return f"https://{settings.bucket}.s3.amazonaws.com/{key}"

    async def put(self, key: str, body: bytes, content_type: str) -> str:
        """Store ``body`` under ``key``, replacing any existing object, and return its URL."""
        self._logger.debug(f"Uploading {len(body)} bytes to s3://{self.bucket}/{key}")
        try:
            await self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                CacheControl=self._settings.cache_control,
            )
        except (ClientError, BotoCoreError, OSError) as e:
            raise UploadFailureError(f"upload of {key} failed: {e}") from e
        return self.public_url(key)

    async def delete_many(self, keys: Iterable[str]) -> List[str]:
        """
        Delete keys in batches and return the keys the store reported as failed.

        Deleting a key that does not exist is not an error in S3.
        """
        keys = list(keys)
        failed: List[str] = []
        for start in range(0, len(keys), MAX_DELETE_BATCH):
            batch = keys[start : start + MAX_DELETE_BATCH]
            response = await self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            for error in response.get("Errors", []):
                self._logger.warning(
                    f"Could not delete s3://{self.bucket}/{error.get('Key')}: "
                    f"{error.get('Code')} {error.get('Message')}"
                )
                failed.append(error.get("Key"))
        return failed


@asynccontextmanager
async def open_asset_store(
    settings: AssetStoreSettings, session: Optional[aioboto3.Session] = None
) -> AsyncIterator[S3AssetStore]:
    """Open one pooled aioboto3 client shared by every upload of a run."""
    session = session or aioboto3.Session()
    async with session.client(  # type: ignore[reportUnknownMemberType]
        "s3",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
    ) as client:
        yield S3AssetStore(client, settings)

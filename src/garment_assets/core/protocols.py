"""Protocol definitions for dependency injection and testability."""

from typing import Any, Callable, Dict, Protocol

from PIL import Image


class AssetStoreClientProtocol(Protocol):
    """Subset of the aioboto3 S3 client used by the asset store."""

    async def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str,
        CacheControl: str,
    ) -> Dict[str, Any]:
        """Put object to the store, replacing any object under the same key."""
        ...

    async def delete_objects(self, Bucket: str, Delete: Dict[str, Any]) -> Dict[str, Any]:
        """Delete several objects in one request."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...


class BackgroundRemover(Protocol):
    """Segments the garment and replaces the background."""

    def __call__(self, image: Image.Image) -> Image.Image:
        ...


# Scores sharpness of a decoded image; higher means sharper.
BlurScorer = Callable[[Image.Image], float]

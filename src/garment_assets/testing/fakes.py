"""Fake implementations for testing purposes."""

import asyncio
import io
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from botocore.exceptions import ClientError
from PIL import Image, ImageDraw

from ..core.models import AssetStoreSettings
from ..core.storage import S3AssetStore


@dataclass
class StoredObject:
    """Fake remote object for testing."""

    key: str
    body: bytes
    content_type: str = "image/jpeg"
    cache_control: str = ""
    version: int = 1
    size: int = 0

    def __post_init__(self):
        if self.size == 0:
            self.size = len(self.body)


@dataclass
class FakeBucket:
    """Fake bucket for testing."""

    name: str
    objects: Dict[str, StoredObject] = field(default_factory=dict)

    def put(self, key: str, body: bytes, content_type: str, cache_control: str = "") -> None:
        previous = self.objects.get(key)
        version = previous.version + 1 if previous else 1
        self.objects[key] = StoredObject(
            key=key,
            body=body,
            content_type=content_type,
            cache_control=cache_control,
            version=version,
        )

    def get_object(self, key: str) -> Optional[StoredObject]:
        return self.objects.get(key)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self.objects if key.startswith(prefix))


def _client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeAssetStoreClient:
    """
    In-memory stand-in for an aioboto3 S3 client.

    Failures can be injected for every call (``set_failure_mode``), for
    keys matching a predicate (``fail_keys_where``) or for the N-th put of
    a run (``fail_put_number``). ``fail_times`` limits how many times each
    injected key failure fires, which lets tests exercise retries.
    """

    def __init__(self):
        self.buckets: Dict[str, FakeBucket] = {}
        self.put_calls: List[str] = []
        self.delete_calls: List[List[str]] = []
        self.should_fail = False
        self.failure_code = "SlowDown"
        self.failure_message = "Simulated store failure"
        self.delay_seconds = 0.0
        self.delay_for: Callable[[str], float] = lambda key: self.delay_seconds
        self._fail_predicate: Optional[Callable[[str], bool]] = None
        self._fail_times: Optional[int] = None
        self._failures_by_key: Dict[str, int] = {}
        self._fail_put_number: Optional[int] = None
        self.in_flight = 0
        self.max_in_flight = 0

    def create_bucket(self, name: str) -> FakeBucket:
        bucket = FakeBucket(name=name)
        self.buckets[name] = bucket
        return bucket

    def get_bucket(self, name: str) -> Optional[FakeBucket]:
        return self.buckets.get(name)

    def set_failure_mode(
        self, should_fail: bool, message: str = "Simulated failure", code: str = "SlowDown"
    ) -> None:
        """Make every call fail."""
        self.should_fail = should_fail
        self.failure_message = message
        self.failure_code = code

    def fail_keys_where(
        self,
        predicate: Callable[[str], bool],
        times: Optional[int] = None,
        code: str = "SlowDown",
    ) -> None:
        """Fail puts whose key matches ``predicate``; ``times=None`` fails forever."""
        self._fail_predicate = predicate
        self._fail_times = times
        self.failure_code = code

    def fail_put_number(self, number: int) -> None:
        """Fail the ``number``-th put (1-based) received by this client."""
        self._fail_put_number = number

    def set_delay(self, seconds: float) -> None:
        """Set artificial latency for every put."""
        self.delay_seconds = seconds

    def _should_fail_put(self, key: str, call_number: int) -> bool:
        if self.should_fail:
            return True
        if self._fail_put_number is not None and call_number == self._fail_put_number:
            return True
        if self._fail_predicate is not None and self._fail_predicate(key):
            count = self._failures_by_key.get(key, 0)
            if self._fail_times is None or count < self._fail_times:
                self._failures_by_key[key] = count + 1
                return True
        return False

    async def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str,
        CacheControl: str = "",
    ) -> Dict[str, Any]:
        self.put_calls.append(Key)
        call_number = len(self.put_calls)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay_for(Key)
            if delay > 0:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)

            if self._should_fail_put(Key, call_number):
                raise _client_error(self.failure_code, self.failure_message, "PutObject")

            bucket = self.buckets.get(Bucket)
            if bucket is None:
                raise _client_error("NoSuchBucket", f"Bucket {Bucket} not found", "PutObject")

            bucket.put(Key, Body, ContentType, CacheControl)
            return {
                "ETag": f'"fake-etag-{Key}"',
                "ResponseMetadata": {"HTTPStatusCode": 200},
            }
        finally:
            self.in_flight -= 1

    async def delete_objects(self, Bucket: str, Delete: Dict[str, Any]) -> Dict[str, Any]:
        keys = [obj["Key"] for obj in Delete.get("Objects", [])]
        self.delete_calls.append(keys)
        if self.should_fail:
            raise _client_error(self.failure_code, self.failure_message, "DeleteObjects")

        bucket = self.buckets.get(Bucket)
        if bucket is None:
            raise _client_error("NoSuchBucket", f"Bucket {Bucket} not found", "DeleteObjects")

        for key in keys:
            bucket.objects.pop(key, None)
        return {"Deleted": [{"Key": key} for key in keys]}

    @property
    def deleted_keys(self) -> Set[str]:
        return {key for call in self.delete_calls for key in call}


class FakeLogger:
    """Fake logger for testing with support for LogContext."""

    def __init__(self, name: str = "test_logger"):
        self.name = name
        self.logs: List[Dict[str, Any]] = []

    def _log(self, level: str, message: str, context: Any = None, **kwargs: Any) -> None:
        log_entry = {
            "level": level,
            "message": message,
            "timestamp": time.time(),
            **kwargs,
        }
        if context is not None:
            log_entry["correlation_id"] = getattr(context, "correlation_id", None)
            log_entry["operation"] = getattr(context, "operation", "")
            log_entry.update(getattr(context, "metadata", {}))
        self.logs.append(log_entry)

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        self._log("DEBUG", message, context, **kwargs)

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        self._log("INFO", message, context, **kwargs)

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        self._log("WARNING", message, context, **kwargs)

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        self._log("ERROR", message, context, **kwargs)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        if level:
            return [log for log in self.logs if log["level"] == level]
        return self.logs.copy()


def _encode(image: Image.Image, image_format: str, **params: Any) -> bytes:
    buffer = io.BytesIO()
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    image.save(buffer, format=image_format, **params)
    return buffer.getvalue()


def create_test_image(
    width: int = 1200,
    height: int = 1600,
    image_format: str = "JPEG",
    mode: str = "RGB",
    **params: Any,
) -> bytes:
    """
    Create a sharp fixture photo: a high-contrast checkerboard with a coloured block.

    The pattern gives a large intensity spread, so it never reads as blurry.
    """
    image = Image.new(mode, (width, height), color="white" if mode != "RGBA" else (255, 255, 255, 255))
    draw = ImageDraw.Draw(image)
    cell = max(8, min(width, height) // 12)
    dark = "black" if mode != "RGBA" else (0, 0, 0, 255)
    for x in range(0, width, cell):
        for y in range(0, height, cell):
            if (x // cell + y // cell) % 2 == 0:
                draw.rectangle([x, y, x + cell - 1, y + cell - 1], fill=dark)
    if mode in ("RGB", "RGBA"):
        draw.rectangle(
            [width // 4, height // 4, width // 2, height // 2],
            fill=(200, 40, 40) if mode == "RGB" else (200, 40, 40, 255),
        )
    if image_format == "JPEG":
        params.setdefault("quality", 95)
    return _encode(image, image_format, **params)


def create_flat_image(
    width: int = 600, height: int = 800, image_format: str = "JPEG", shade: int = 128
) -> bytes:
    """Create a featureless grey photo whose intensity spread is ~0, i.e. 'blurry'."""
    image = Image.new("RGB", (width, height), color=(shade, shade, shade))
    return _encode(image, image_format)


def create_oriented_jpeg(width: int, height: int, orientation: int) -> bytes:
    """Create a JPEG whose stored pixels are ``width`` x ``height`` with an EXIF orientation tag."""
    image = Image.new("RGB", (width, height), color="white")
    draw = ImageDraw.Draw(image)
    # Marker in the stored top-left corner, to check where it lands after rotation.
    draw.rectangle([0, 0, width // 4, height // 4], fill="black")
    exif = Image.Exif()
    exif[0x0112] = orientation
    return _encode(image, "JPEG", quality=95, exif=exif.tobytes())


def setup_test_store(
    bucket: str = "test-assets",
    public_base_url: Optional[str] = "https://cdn.example.com",
) -> "tuple[FakeAssetStoreClient, S3AssetStore]":
    """Set up an in-memory client with one bucket and an S3AssetStore around it."""
    client = FakeAssetStoreClient()
    client.create_bucket(bucket)
    settings = AssetStoreSettings(bucket=bucket, public_base_url=public_base_url)
    return client, S3AssetStore(client, settings)

"""Shared data models for the garment asset pipeline."""

import os
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import ConfigurationError


class Codec(str, Enum):
    """Output encodings rendered for every size preset."""

    WEBP = "webp"
    JPEG = "jpeg"

    @property
    def pil_format(self) -> str:
        return "WEBP" if self is Codec.WEBP else "JPEG"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "webp" if self is Codec.WEBP else "jpg"


class ImageState(str, Enum):
    """States a single submitted photo moves through."""

    RECEIVED = "received"
    VALIDATED = "validated"
    ANALYZED = "analyzed"
    NORMALIZED = "normalized"
    GENERATED = "generated"
    UPLOADED = "uploaded"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Error categories reported back to callers."""

    INVALID_INPUT = "invalid_input"
    PROCESSING_FAILURE = "processing_failure"
    UPLOAD_FAILURE = "upload_failure"


class VariantSpec(BaseModel):
    """One rung of the resolution ladder."""

    model_config = ConfigDict(frozen=True)

    name: str
    max_width: int = Field(gt=0)
    max_height: int = Field(gt=0)
    quality: int = Field(ge=1, le=100)


DEFAULT_VARIANTS: Tuple[VariantSpec, ...] = (
    VariantSpec(name="original", max_width=1200, max_height=1600, quality=90),
    VariantSpec(name="large", max_width=800, max_height=1066, quality=85),
    VariantSpec(name="medium", max_width=400, max_height=533, quality=80),
    VariantSpec(name="thumb", max_width=150, max_height=200, quality=75),
)


class PipelineConfig(BaseModel):
    """Immutable configuration handed to the orchestrator at construction."""

    model_config = ConfigDict(frozen=True)

    variants: Tuple[VariantSpec, ...] = DEFAULT_VARIANTS
    codecs: Tuple[Codec, ...] = (Codec.WEBP, Codec.JPEG)
    accepted_formats: Tuple[str, ...] = ("JPEG", "PNG", "WEBP")

    min_width: int = 300
    min_height: int = 400
    max_width: int = 5000
    max_height: int = 5000

    blur_threshold: float = 20.0

    autocontrast_cutoff: float = 1.0
    brightness_factor: float = 1.05
    saturation_factor: float = 1.10
    remove_background: bool = False
    watermark_text: Optional[str] = None

    cpu_pool: str = "process"
    cpu_workers: Optional[int] = None
    variant_workers: int = 4

    max_in_flight_uploads: int = 16
    upload_attempts: int = 3
    upload_retry_delay: float = 0.5
    upload_backoff_factor: float = 2.0
    upload_timeout: float = 30.0

    @model_validator(mode="after")
    def _check_consistency(self) -> "PipelineConfig":
        if not self.variants:
            raise ConfigurationError("at least one variant spec is required")
        names = [spec.name for spec in self.variants]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate variant names: {names}")
        if not self.codecs:
            raise ConfigurationError("at least one codec is required")
        if self.min_width > self.max_width or self.min_height > self.max_height:
            raise ConfigurationError("minimum dimensions exceed maximum dimensions")
        if self.cpu_pool not in ("process", "thread"):
            raise ConfigurationError(f"unknown cpu_pool: {self.cpu_pool}")
        if self.cpu_workers is not None and self.cpu_workers < 1:
            raise ConfigurationError("cpu_workers must be positive")
        if self.variant_workers < 1 or self.max_in_flight_uploads < 1:
            raise ConfigurationError("pool sizes must be positive")
        if self.upload_attempts < 1:
            raise ConfigurationError("upload_attempts must be at least 1")
        return self

    @property
    def variant_count(self) -> int:
        return len(self.variants) * len(self.codecs)

    def resolved_cpu_workers(self) -> int:
        return self.cpu_workers or os.cpu_count() or 1


class AssetStoreSettings(BaseModel):
    """Connection settings for the S3-compatible asset store."""

    bucket: str
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    public_base_url: Optional[str] = None
    cache_control: str = "public, max-age=31536000"

    @classmethod
    def from_env(cls) -> "AssetStoreSettings":
        """Load settings from GARMENT_ASSETS_* environment variables."""
        bucket = os.getenv("GARMENT_ASSETS_BUCKET")
        if not bucket:
            raise ConfigurationError("GARMENT_ASSETS_BUCKET is not set")
        return cls(
            bucket=bucket,
            region=os.getenv("GARMENT_ASSETS_REGION") or None,
            endpoint_url=os.getenv("GARMENT_ASSETS_ENDPOINT_URL") or None,
            public_base_url=os.getenv("GARMENT_ASSETS_PUBLIC_BASE_URL") or None,
        )


class SourceImage(BaseModel):
    """Raw upload plus the facts read from its header."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str
    width: int
    height: int
    orientation: int = 1


class ValidationReport(BaseModel):
    """Outcome of format and dimension checks."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reasons: List[str] = Field(default_factory=list)
    width: int = 0
    height: int = 0
    format: Optional[str] = None


class QualityReport(BaseModel):
    """Advisory sharpness assessment."""

    model_config = ConfigDict(frozen=True)

    sharpness_score: float
    is_likely_blurry: bool
    recommendation: str


class EncodedVariant(BaseModel):
    """One encoded buffer, alive only between generation and upload."""

    size_name: str
    codec: Codec
    data: bytes = Field(repr=False)
    width: int
    height: int


class UploadedAsset(BaseModel):
    """Remote location of one uploaded variant."""

    size_name: str
    codec: Codec
    remote_url: str
    remote_id: str


class AssetSet(BaseModel):
    """All uploaded variants of one photo, grouped by a shared public id."""

    public_id: str
    folder: str
    assets: List[UploadedAsset] = Field(default_factory=list)

    @property
    def urls(self) -> Dict[str, Dict[str, str]]:
        url_map: Dict[str, Dict[str, str]] = {}
        for asset in self.assets:
            url_map.setdefault(asset.size_name, {})[asset.codec.value] = asset.remote_url
        return url_map

    def is_complete(self, config: PipelineConfig) -> bool:
        expected = {(spec.name, codec) for spec in config.variants for codec in config.codecs}
        present = {(asset.size_name, asset.codec) for asset in self.assets}
        return present == expected and len(self.assets) == len(expected)


class Dimensions(BaseModel):
    width: int
    height: int


class RenderedImage(BaseModel):
    """Output of the CPU-bound stages for one accepted photo."""

    quality: QualityReport
    original_dimensions: Dimensions
    variants: List[EncodedVariant]


class ProcessOptions(BaseModel):
    """Per-request options supplied by the caller."""

    folder: str
    public_id_prefix: Optional[str] = None


class ImageResult(BaseModel):
    """Successful outcome for one photo."""

    index: int
    public_id: str
    urls: Dict[str, Dict[str, str]]
    quality: QualityReport
    original_dimensions: Dimensions
    states: List[ImageState] = Field(default_factory=list)
    success: bool = True


class ImageError(BaseModel):
    """Failed outcome for one photo."""

    index: int
    public_id: str
    state: ImageState
    kind: ErrorKind
    message: str
    reasons: List[str] = Field(default_factory=list)
    states: List[ImageState] = Field(default_factory=list)
    success: bool = False

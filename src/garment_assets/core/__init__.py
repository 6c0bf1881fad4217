"""Core models, services and utilities for the garment asset pipeline."""

from .logging_config import (
    configure_multiprocessing_logging,
    get_logger,
    set_log_level,
    setup_logger,
)
from .exceptions import (
    GarmentAssetsError,
    ConfigurationError,
    InvalidInputError,
    ProcessingFailureError,
    UploadFailureError,
    UploadTimeoutError,
    with_error_handling,
)
from .models import (
    AssetSet,
    AssetStoreSettings,
    Codec,
    DEFAULT_VARIANTS,
    EncodedVariant,
    ErrorKind,
    ImageError,
    ImageResult,
    ImageState,
    PipelineConfig,
    ProcessOptions,
    QualityReport,
    SourceImage,
    UploadedAsset,
    ValidationReport,
    VariantSpec,
)
from .services import (
    DerivativeGenerator,
    ImageNormalizer,
    ImageValidator,
    QualityAnalyzer,
)

__all__ = [
    "AssetSet",
    "AssetStoreSettings",
    "Codec",
    "DEFAULT_VARIANTS",
    "EncodedVariant",
    "ErrorKind",
    "ImageError",
    "ImageResult",
    "ImageState",
    "PipelineConfig",
    "ProcessOptions",
    "QualityReport",
    "SourceImage",
    "UploadedAsset",
    "ValidationReport",
    "VariantSpec",
    "DerivativeGenerator",
    "ImageNormalizer",
    "ImageValidator",
    "QualityAnalyzer",
    "setup_logger",
    "get_logger",
    "set_log_level",
    "configure_multiprocessing_logging",
    "GarmentAssetsError",
    "ConfigurationError",
    "InvalidInputError",
    "ProcessingFailureError",
    "UploadFailureError",
    "UploadTimeoutError",
    "with_error_handling",
]

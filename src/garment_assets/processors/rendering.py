"""CPU-bound stages, written as module-level functions so a process pool can run them."""

from functools import lru_cache
from typing import Optional, Tuple

from ..core import get_logger
from ..core.exceptions import ProcessingFailureError, with_error_handling
from ..core.image_utils import read_source_image
from ..core.models import Dimensions, PipelineConfig, RenderedImage, ValidationReport
from ..core.protocols import BackgroundRemover
from ..core.services import (
    DerivativeGenerator,
    ImageNormalizer,
    ImageValidator,
    QualityAnalyzer,
)

RENDER_STAGES = ("analyze", "normalize", "generate")


@lru_cache(maxsize=8)
def _services(
    config: PipelineConfig,
) -> Tuple[ImageValidator, QualityAnalyzer, DerivativeGenerator]:
    # Stateless services, built once per worker and config.
    return ImageValidator(config), QualityAnalyzer(config), DerivativeGenerator(config)


@with_error_handling
def validate_image(data: bytes, config: PipelineConfig) -> ValidationReport:
    """Run the validator inside a CPU worker."""
    validator, _, _ = _services(config)
    return validator.validate(data)


@with_error_handling
def render_image(
    data: bytes,
    config: PipelineConfig,
    background_remover: Optional[BackgroundRemover] = None,
) -> RenderedImage:
    """
    Analyze, normalize and generate every variant of an accepted photo.

    Any failure is raised as ProcessingFailureError with ``stage`` set to the
    step that broke ("analyze", "normalize" or "generate").
    """
    logger = get_logger("render")
    _, analyzer, generator = _services(config)
    stage = RENDER_STAGES[0]
    try:
        source = read_source_image(data)
        quality = analyzer.analyze(data)
        if quality.is_likely_blurry:
            logger.warning(
                f"Photo may be blurry (score {quality.sharpness_score:.2f}), continuing"
            )

        stage = RENDER_STAGES[1]
        normalized = ImageNormalizer(config, background_remover).normalize(data)

        stage = RENDER_STAGES[2]
        variants = generator.generate(normalized)
    except ProcessingFailureError as e:
        if e.stage is None:
            e.stage = stage
        raise
    except Exception as e:  # noqa: BLE001
        raise ProcessingFailureError(f"{stage} failed: {e}", stage=stage) from e

    logger.debug(
        f"Rendered {len(variants)} variants from {source.width}x{source.height} "
        f"{source.mime_type}"
    )
    return RenderedImage(
        quality=quality,
        original_dimensions=Dimensions(width=source.width, height=source.height),
        variants=variants,
    )

"""Pure image services for the garment asset pipeline. No network I/O."""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from .exceptions import ConfigurationError, InvalidInputError, ProcessingFailureError
from .image_utils import (
    cover_crop,
    draw_watermark,
    encode_image,
    flatten_to_rgb,
    intensity_stddev,
    open_image,
    read_source_image,
)
from .logging_config import get_logger
from .models import (
    Codec,
    EncodedVariant,
    PipelineConfig,
    QualityReport,
    SourceImage,
    ValidationReport,
    VariantSpec,
)
from .protocols import BackgroundRemover, BlurScorer

DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError)

# Multi-picture JPEGs written by many phone cameras.
FORMAT_ALIASES = {"MPO": "JPEG"}

UNDECODABLE = "undecodable image"
BLURRY_RECOMMENDATION = (
    "Photo looks blurry. Retake it holding the camera steady and with good lighting."
)
QUALITY_OK = "quality OK"
QUALITY_UNAVAILABLE = "quality check unavailable"


class ImageValidator:
    """Accepts or rejects raw bytes on format and dimension grounds."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self._config = config or PipelineConfig()

    def validate(self, data: bytes) -> ValidationReport:
        """
        Check format, dimensions and decodability of raw upload bytes.

        Never raises for malformed input: anything Pillow cannot read is
        reported as ``["undecodable image"]``. Dimension checks use the
        stored pixel size, before any orientation is applied. The full
        decode runs only after format and dimensions pass, so oversized
        uploads are rejected from their header alone.
        """
        config = self._config
        try:
            img = open_image(data)
        except Image.DecompressionBombError:
            return ValidationReport(
                accepted=False, reasons=["too large: exceeds decompression limit"]
            )
        except DECODE_ERRORS:
            return ValidationReport(accepted=False, reasons=[UNDECODABLE])

        with img:
            image_format = FORMAT_ALIASES.get(img.format or "", img.format)
            width, height = img.size
            reasons: List[str] = []

            if image_format not in config.accepted_formats:
                reasons.append(f"unsupported format: {image_format or 'unknown'}")
            if width < config.min_width or height < config.min_height:
                reasons.append(
                    f"too small: {width}x{height} "
                    f"(minimum {config.min_width}x{config.min_height})"
                )
            if width > config.max_width or height > config.max_height:
                reasons.append(
                    f"too large: {width}x{height} "
                    f"(maximum {config.max_width}x{config.max_height})"
                )

            if not reasons:
                try:
                    img.load()
                except (Image.DecompressionBombError, *DECODE_ERRORS):
                    reasons = [UNDECODABLE]

        return ValidationReport(
            accepted=not reasons,
            reasons=reasons,
            width=width,
            height=height,
            format=image_format,
        )

    def ensure_valid(self, data: bytes) -> SourceImage:
        """Validate and return the SourceImage, raising InvalidInputError on rejection."""
        report = self.validate(data)
        if not report.accepted:
            raise InvalidInputError(
                "image rejected: " + "; ".join(report.reasons), report.reasons
            )
        return read_source_image(data)


class QualityAnalyzer:
    """
    Flags likely-blurry shots with a cheap intensity-spread heuristic.

    The result is advisory: a blurry photo is still normalized and uploaded,
    and the report only travels back to the caller so the seller can be
    warned. The scorer is injectable so a learned model can replace the
    heuristic without touching the pipeline.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        scorer: BlurScorer = intensity_stddev,
    ):
        self._config = config or PipelineConfig()
        self._scorer = scorer

    def analyze(self, data: bytes) -> QualityReport:
        try:
            img = open_image(data)
            img.load()
        except (Image.DecompressionBombError, *DECODE_ERRORS):
            get_logger("quality").warning(
                "Quality check skipped: image could not be decoded"
            )
            return QualityReport(
                sharpness_score=0.0,
                is_likely_blurry=False,
                recommendation=QUALITY_UNAVAILABLE,
            )
        return self.assess(img)

    def assess(self, img: Image.Image) -> QualityReport:
        score = float(self._scorer(img))
        is_blurry = score < self._config.blur_threshold
        return QualityReport(
            sharpness_score=score,
            is_likely_blurry=is_blurry,
            recommendation=BLURRY_RECOMMENDATION if is_blurry else QUALITY_OK,
        )


class ImageNormalizer:
    """Repairs orientation and applies deterministic colour correction."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        background_remover: Optional[BackgroundRemover] = None,
    ):
        self._config = config or PipelineConfig()
        if self._config.remove_background and background_remover is None:
            raise ConfigurationError(
                "remove_background is enabled but no background remover was provided"
            )
        self._background_remover = background_remover

    @property
    def removes_background(self) -> bool:
        return self._config.remove_background and self._background_remover is not None

    def normalize(self, data: bytes) -> Image.Image:
        """
        Decode, auto-rotate and colour-correct an accepted photo.

        The returned RGB image has its pixels physically rotated/flipped
        according to the EXIF orientation tag, so later stages can ignore
        orientation entirely.
        """
        img = ImageOps.exif_transpose(open_image(data))
        img = flatten_to_rgb(img)

        if self.removes_background:
            img = flatten_to_rgb(self._background_remover(img))

        return self.correct_colors(img)

    def correct_colors(self, img: Image.Image) -> Image.Image:
        # Order is fixed: histogram stretch, sharpen, brightness, saturation.
        config = self._config
        img = ImageOps.autocontrast(img, cutoff=config.autocontrast_cutoff)
        img = img.filter(ImageFilter.SHARPEN)
        img = ImageEnhance.Brightness(img).enhance(config.brightness_factor)
        img = ImageEnhance.Color(img).enhance(config.saturation_factor)

        if config.watermark_text:
            img = draw_watermark(img, config.watermark_text)
        return img


class DerivativeGenerator:
    """Renders the size ladder in every configured codec."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self._config = config or PipelineConfig()

    def generate(self, image: Image.Image) -> List[EncodedVariant]:
        """
        Produce one EncodedVariant per (size preset, codec) pair.

        Each pair is rendered independently in a thread pool (Pillow releases
        the GIL while resampling and encoding); every task crops its own copy
        from the shared read-only source. The list comes back in catalogue
        order, codecs in configured order, whatever order tasks finish in.
        """
        config = self._config
        image.load()
        jobs = [(spec, codec) for spec in config.variants for codec in config.codecs]

        with ThreadPoolExecutor(
            max_workers=min(config.variant_workers, len(jobs)),
            thread_name_prefix="variant",
        ) as executor:
            futures = [
                executor.submit(self._render_variant, image, spec, codec)
                for spec, codec in jobs
            ]
            return [future.result() for future in futures]

    @staticmethod
    def _render_variant(image: Image.Image, spec: VariantSpec, codec: Codec) -> EncodedVariant:
        resized = cover_crop(image, spec.max_width, spec.max_height)
        if resized.size != (spec.max_width, spec.max_height):
            raise ProcessingFailureError(
                f"{spec.name} rendered at {resized.size}, "
                f"expected {spec.max_width}x{spec.max_height}"
            )
        return EncodedVariant(
            size_name=spec.name,
            codec=codec,
            data=encode_image(resized, codec, spec.quality),
            width=resized.width,
            height=resized.height,
        )

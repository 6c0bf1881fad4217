"""Tests for models.py data classes and configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from garment_assets.core.exceptions import ConfigurationError
from garment_assets.core.models import (
    AssetSet,
    AssetStoreSettings,
    Codec,
    DEFAULT_VARIANTS,
    ErrorKind,
    ImageError,
    ImageState,
    PipelineConfig,
    ProcessOptions,
    UploadedAsset,
    VariantSpec,
)


def _full_asset_set(config: PipelineConfig) -> AssetSet:
    return AssetSet(
        public_id="abc_0",
        folder="listings",
        assets=[
            UploadedAsset(
                size_name=spec.name,
                codec=codec,
                remote_url=f"https://cdn/{spec.name}.{codec.extension}",
                remote_id=f"listings/{spec.name}/abc_0.{codec.extension}",
            )
            for spec in config.variants
            for codec in config.codecs
        ],
    )


class TestCodec:
    """Tests for Codec enum."""

    def test_webp_properties(self):
        assert Codec.WEBP.pil_format == "WEBP"
        assert Codec.WEBP.content_type == "image/webp"
        assert Codec.WEBP.extension == "webp"

    def test_jpeg_properties(self):
        assert Codec.JPEG.pil_format == "JPEG"
        assert Codec.JPEG.content_type == "image/jpeg"
        assert Codec.JPEG.extension == "jpg"


class TestPipelineConfig:
    """Tests for PipelineConfig model."""

    def test_defaults_describe_the_standard_ladder(self):
        config = PipelineConfig()
        ladder = [(s.name, s.max_width, s.max_height, s.quality) for s in config.variants]
        assert ladder == [
            ("original", 1200, 1600, 90),
            ("large", 800, 1066, 85),
            ("medium", 400, 533, 80),
            ("thumb", 150, 200, 75),
        ]
        assert config.codecs == (Codec.WEBP, Codec.JPEG)
        assert config.variant_count == 8
        assert config.accepted_formats == ("JPEG", "PNG", "WEBP")
        assert (config.min_width, config.min_height) == (300, 400)
        assert (config.max_width, config.max_height) == (5000, 5000)
        assert config.blur_threshold == 20.0
        assert config.remove_background is False

    def test_config_is_immutable(self):
        config = PipelineConfig()
        with pytest.raises(ValidationError):
            config.blur_threshold = 5.0

    def test_config_is_hashable(self):
        assert hash(PipelineConfig()) == hash(PipelineConfig())

    def test_duplicate_variant_names_rejected(self):
        spec = DEFAULT_VARIANTS[0]
        with pytest.raises(ConfigurationError, match="duplicate"):
            PipelineConfig(variants=(spec, spec))

    def test_empty_codecs_rejected(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig(codecs=())

    def test_unknown_cpu_pool_rejected(self):
        with pytest.raises(ConfigurationError, match="cpu_pool"):
            PipelineConfig(cpu_pool="gpu")

    def test_min_larger_than_max_rejected(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig(min_width=6000)

    def test_resolved_cpu_workers(self):
        assert PipelineConfig(cpu_workers=3).resolved_cpu_workers() == 3
        assert PipelineConfig().resolved_cpu_workers() >= 1

    def test_variant_spec_rejects_bad_quality(self):
        with pytest.raises(ValidationError):
            VariantSpec(name="x", max_width=10, max_height=10, quality=0)


class TestAssetStoreSettings:
    """Tests for AssetStoreSettings.from_env."""

    def test_from_env(self):
        env = {
            "GARMENT_ASSETS_BUCKET": "assets",
            "GARMENT_ASSETS_REGION": "eu-west-1",
            "GARMENT_ASSETS_PUBLIC_BASE_URL": "https://cdn.example.com",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = AssetStoreSettings.from_env()
        assert settings.bucket == "assets"
        assert settings.region == "eu-west-1"
        assert settings.endpoint_url is None
        assert settings.public_base_url == "https://cdn.example.com"

    def test_from_env_requires_bucket(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match="GARMENT_ASSETS_BUCKET"):
                AssetStoreSettings.from_env()


class TestAssetSet:
    """Tests for AssetSet model."""

    def test_urls_grouped_by_size_then_codec(self):
        config = PipelineConfig()
        urls = _full_asset_set(config).urls
        assert set(urls) == {"original", "large", "medium", "thumb"}
        assert urls["thumb"] == {"webp": "https://cdn/thumb.webp", "jpeg": "https://cdn/thumb.jpg"}

    def test_complete_set(self):
        config = PipelineConfig()
        assert _full_asset_set(config).is_complete(config)

    def test_missing_variant_is_incomplete(self):
        config = PipelineConfig()
        asset_set = _full_asset_set(config)
        asset_set.assets.pop()
        assert not asset_set.is_complete(config)

    def test_duplicate_variant_is_incomplete(self):
        config = PipelineConfig()
        asset_set = _full_asset_set(config)
        asset_set.assets[-1] = asset_set.assets[0]
        assert not asset_set.is_complete(config)


class TestResults:
    """Tests for per-image outcome models."""

    def test_image_error_serializes_enums_as_values(self):
        error = ImageError(
            index=1,
            public_id="abc_1",
            state=ImageState.REJECTED,
            kind=ErrorKind.INVALID_INPUT,
            message="image rejected: too small: 200x200 (minimum 300x400)",
            reasons=["too small: 200x200 (minimum 300x400)"],
        )
        dumped = error.model_dump(mode="json")
        assert dumped["success"] is False
        assert dumped["state"] == "rejected"
        assert dumped["kind"] == "invalid_input"

    def test_process_options_prefix_optional(self):
        assert ProcessOptions(folder="listings").public_id_prefix is None

"""Testing utilities and fakes for the garment asset pipeline."""

from .fakes import (
    FakeAssetStoreClient,
    FakeBucket,
    FakeLogger,
    StoredObject,
    create_flat_image,
    create_oriented_jpeg,
    create_test_image,
    setup_test_store,
)

__all__ = [
    "FakeAssetStoreClient",
    "FakeBucket",
    "FakeLogger",
    "StoredObject",
    "create_flat_image",
    "create_oriented_jpeg",
    "create_test_image",
    "setup_test_store",
]

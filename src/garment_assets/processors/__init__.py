"""CPU-pool render jobs and the concurrent upload coordinator."""

from .rendering import render_image, validate_image
from .upload import UploadCoordinator

__all__ = [
    "render_image",
    "validate_image",
    "UploadCoordinator",
]

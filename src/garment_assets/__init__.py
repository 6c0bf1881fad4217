"""Garment photo ingestion: validate, normalize, render and upload asset sets."""

__version__ = "0.1.0"

from .pipeline import PipelineOrchestrator, process_images_sync

__all__ = ["PipelineOrchestrator", "process_images_sync", "__version__"]

"""Pipeline orchestrator: sequences validation, rendering and upload per photo."""

import asyncio
import uuid
from concurrent.futures import Executor
from typing import List, Optional, Sequence, Union

from .core.error_handling import BatchOperationContextManager
from .core.exceptions import ProcessingFailureError, UploadFailureError
from .core.factories import CpuExecutorFactory, PipelineFactory
from .core.models import (
    AssetSet,
    AssetStoreSettings,
    ErrorKind,
    ImageError,
    ImageResult,
    ImageState,
    PipelineConfig,
    ProcessOptions,
    RenderedImage,
)
from .core.observability import LogContext, MetricsCollector, create_logger, stage_timer
from .core.protocols import BackgroundRemover, LoggerProtocol
from .core.services import ImageNormalizer
from .core.storage import S3AssetStore, open_asset_store
from .processors.rendering import render_image, validate_image
from .processors.upload import UploadCoordinator

ImageOutcome = Union[ImageResult, ImageError]

# States reached before a render stage starts, keyed by that stage.
_STATES_BEFORE_STAGE = {
    "analyze": [],
    "normalize": [ImageState.ANALYZED],
    "generate": [ImageState.ANALYZED, ImageState.NORMALIZED],
}


class PipelineOrchestrator:
    """
    Turns raw photo bytes into complete, uploaded asset sets.

    Each photo runs ``received -> validated -> analyzed -> normalized ->
    generated -> uploaded -> done``, or stops at ``rejected`` (validation)
    or ``failed`` (any later stage). Nothing is retried here; upload retries
    live in the UploadCoordinator.

    CPU work goes to one bounded executor and every submission on the same
    event loop shares one upload semaphore, so concurrent batches queue on
    those pools instead of multiplying them.
    """

    def __init__(
        self,
        store: S3AssetStore,
        config: Optional[PipelineConfig] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        background_remover: Optional[BackgroundRemover] = None,
        cpu_executor: Optional[Executor] = None,
        owns_executor: Optional[bool] = None,
    ):
        self._config = config or PipelineConfig()
        # Fails fast when remove_background is on without a remover.
        ImageNormalizer(self._config, background_remover)
        self._background_remover = background_remover
        self._uploader = UploadCoordinator(store, self._config)
        self._logger = logger or create_logger("pipeline")
        self._metrics = metrics_collector

        if cpu_executor is None:
            cpu_executor = CpuExecutorFactory.create_executor(self._config)
            owns_executor = True if owns_executor is None else owns_executor
        self._executor = cpu_executor
        self._owns_executor = bool(owns_executor)
        self._upload_slots: Optional[asyncio.Semaphore] = None
        self._upload_slots_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def uploader(self) -> UploadCoordinator:
        return self._uploader

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "PipelineOrchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def upload_slots(self) -> asyncio.Semaphore:
        """The upload bound shared by every submission on the running loop."""
        loop = asyncio.get_running_loop()
        if self._upload_slots is None or self._upload_slots_loop is not loop:
            self._upload_slots = asyncio.Semaphore(self._config.max_in_flight_uploads)
            self._upload_slots_loop = loop
        return self._upload_slots

    @staticmethod
    def public_id_for(index: int, prefix: Optional[str]) -> str:
        """``{prefix}_{index}`` when a prefix is given, otherwise a fresh random id."""
        if prefix:
            return f"{prefix}_{index}"
        return uuid.uuid4().hex

    async def process_images(
        self, raw_files: Sequence[bytes], options: ProcessOptions
    ) -> List[ImageOutcome]:
        """
        Process a submission of one or more photos.

        Photos run concurrently and independently; the returned list matches
        the input order. A failed photo never affects its siblings, and
        whether a partially successful batch is good enough for a listing is
        left to the caller.
        """
        semaphore = self.upload_slots()
        public_ids = [
            self.public_id_for(index, options.public_id_prefix)
            for index in range(len(raw_files))
        ]

        with BatchOperationContextManager(f"ingest of {len(raw_files)} photo(s)") as batch:
            outcomes = await asyncio.gather(
                *[
                    self.process_image(data, options.folder, public_id, index, semaphore)
                    for index, (data, public_id) in enumerate(zip(raw_files, public_ids))
                ]
            )
            for outcome in outcomes:
                if isinstance(outcome, ImageError):
                    batch.add_error(
                        f"{outcome.kind.value}: {outcome.message}",
                        f"#{outcome.index} {outcome.public_id}",
                    )

        return list(outcomes)

    async def process_image(
        self,
        data: bytes,
        folder: str,
        public_id: str,
        index: int = 0,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> ImageOutcome:
        """Run one photo through the state machine; never raises except on cancellation."""
        states: List[ImageState] = [ImageState.RECEIVED]
        context = LogContext(component="pipeline").with_metadata(
            index=index, public_id=public_id
        )
        loop = asyncio.get_running_loop()
        semaphore = semaphore or self.upload_slots()
        self._logger.info("Received photo", context, size_bytes=len(data))

        # Validation
        try:
            with stage_timer("validate", self._metrics, index=index):
                report = await loop.run_in_executor(
                    self._executor, validate_image, data, self._config
                )
        except Exception as e:  # noqa: BLE001
            return self._failure(
                index, public_id, states, ErrorKind.PROCESSING_FAILURE,
                f"validation crashed: {e}", context,
            )

        if not report.accepted:
            states.append(ImageState.REJECTED)
            self._logger.warning(
                "Photo rejected", context.with_operation("validate"),
                reasons="; ".join(report.reasons),
            )
            return ImageError(
                index=index,
                public_id=public_id,
                state=ImageState.REJECTED,
                kind=ErrorKind.INVALID_INPUT,
                message="image rejected: " + "; ".join(report.reasons),
                reasons=report.reasons,
                states=states,
            )
        states.append(ImageState.VALIDATED)

        # Analyze, normalize, generate
        try:
            with stage_timer("render", self._metrics, index=index):
                rendered: RenderedImage = await loop.run_in_executor(
                    self._executor,
                    render_image,
                    data,
                    self._config,
                    self._background_remover,
                )
        except ProcessingFailureError as e:
            states.extend(_STATES_BEFORE_STAGE.get(e.stage or "", []))
            return self._failure(
                index, public_id, states, ErrorKind.PROCESSING_FAILURE, str(e), context
            )
        except Exception as e:  # noqa: BLE001
            return self._failure(
                index, public_id, states, ErrorKind.PROCESSING_FAILURE,
                f"render crashed: {e}", context,
            )
        states.extend([ImageState.ANALYZED, ImageState.NORMALIZED, ImageState.GENERATED])

        if rendered.quality.is_likely_blurry:
            self._logger.warning(
                "Photo is likely blurry; uploading anyway",
                context.with_operation("analyze"),
                score=round(rendered.quality.sharpness_score, 2),
            )

        # Upload
        try:
            with stage_timer("upload", self._metrics, index=index):
                asset_set: AssetSet = await self._uploader.upload(
                    rendered.variants, folder, public_id, semaphore
                )
        except UploadFailureError as e:
            return self._failure(
                index, public_id, states, ErrorKind.UPLOAD_FAILURE, str(e), context
            )
        except Exception as e:  # noqa: BLE001
            await self._uploader.rollback(folder, public_id)
            return self._failure(
                index, public_id, states, ErrorKind.UPLOAD_FAILURE,
                f"upload crashed: {e}", context,
            )

        if not asset_set.is_complete(self._config):
            await self._uploader.rollback(folder, public_id)
            return self._failure(
                index, public_id, states, ErrorKind.UPLOAD_FAILURE,
                f"asset set {public_id} is incomplete", context,
            )

        states.extend([ImageState.UPLOADED, ImageState.DONE])
        self._logger.info("Photo done", context, variants=len(asset_set.assets))
        return ImageResult(
            index=index,
            public_id=public_id,
            urls=asset_set.urls,
            quality=rendered.quality,
            original_dimensions=rendered.original_dimensions,
            states=states,
        )

    def _failure(
        self,
        index: int,
        public_id: str,
        states: List[ImageState],
        kind: ErrorKind,
        message: str,
        context: LogContext,
    ) -> ImageError:
        states.append(ImageState.FAILED)
        self._logger.error("Photo failed", context, kind=kind.value, error=message)
        return ImageError(
            index=index,
            public_id=public_id,
            state=ImageState.FAILED,
            kind=kind,
            message=message,
            states=states,
        )


def process_images_sync(
    raw_files: Sequence[bytes],
    options: ProcessOptions,
    settings: AssetStoreSettings,
    config: Optional[PipelineConfig] = None,
) -> List[ImageOutcome]:
    """
    Synchronous entry point: open the store, process the submission, close everything.

    This is the synchronous wrapper that runs the async pipeline in a fresh
    event loop.
    """

    async def _run() -> List[ImageOutcome]:
        async with open_asset_store(settings) as store:
            with PipelineFactory.create_pipeline(store, config) as pipeline:
                return await pipeline.process_images(raw_files, options)

    return asyncio.run(_run())

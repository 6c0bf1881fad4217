"""Upload coordinator - ships one photo's variants concurrently as a single unit."""

import asyncio
from typing import Dict, List, Optional

from ..core import get_logger
from ..core.error_handling import retry_async_operation
from ..core.exceptions import UploadFailureError, UploadTimeoutError
from ..core.image_utils import build_asset_key
from ..core.models import AssetSet, EncodedVariant, PipelineConfig, UploadedAsset
from ..core.storage import S3AssetStore


class UploadCoordinator:
    """
    Uploads every EncodedVariant of one photo and assembles the AssetSet.

    The set is all-or-nothing. Uploads run concurrently under a semaphore
    shared by the whole orchestrator, holding one slot per put attempt. If
    any variant still fails after its retries, the siblings still in flight
    are cancelled, every logical key of the set is deleted from the store,
    and UploadFailureError is raised. The same cleanup runs when the caller
    cancels the upload. No AssetSet is returned until every variant has
    reported.
    """

    def __init__(self, store: S3AssetStore, config: Optional[PipelineConfig] = None):
        self._store = store
        self._config = config or PipelineConfig()
        self._logger = get_logger("upload")
        self._put_with_retry = retry_async_operation(
            max_attempts=self._config.upload_attempts,
            initial_delay=self._config.upload_retry_delay,
            backoff_factor=self._config.upload_backoff_factor,
        )(self._put_once)

    def asset_keys(self, folder: str, public_id: str) -> List[str]:
        """Every remote key a complete set for ``public_id`` occupies."""
        return [
            build_asset_key(folder, spec.name, public_id, codec)
            for spec in self._config.variants
            for codec in self._config.codecs
        ]

    async def upload(
        self,
        variants: List[EncodedVariant],
        folder: str,
        public_id: str,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> AssetSet:
        semaphore = semaphore or asyncio.Semaphore(self._config.max_in_flight_uploads)
        tasks: Dict[asyncio.Task, EncodedVariant] = {
            asyncio.ensure_future(
                self._upload_variant(variant, folder, public_id, semaphore)
            ): variant
            for variant in variants
        }
        if not tasks:
            raise UploadFailureError(f"no variants to upload for {public_id}")

        try:
            done, pending = await asyncio.wait(
                tasks.keys(), return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            self._logger.warning(f"[{public_id}] Upload cancelled, rolling back")
            await self._abort(tasks.keys(), folder, public_id)
            raise

        failed = [task for task in done if task.exception() is not None]
        if failed:
            first_error = failed[0].exception()
            variant = tasks[failed[0]]
            self._logger.error(
                f"[{public_id}] {variant.size_name}/{variant.codec.value} failed, "
                f"cancelling {len(pending)} sibling upload(s): {first_error}"
            )
            await self._abort(tasks.keys(), folder, public_id)
            error_cls = (
                UploadTimeoutError
                if isinstance(first_error, UploadTimeoutError)
                else UploadFailureError
            )
            raise error_cls(
                f"asset set {public_id} failed on "
                f"{variant.size_name}/{variant.codec.value}: {first_error}"
            ) from first_error

        asset_set = AssetSet(
            public_id=public_id,
            folder=folder,
            assets=self._in_catalogue_order([task.result() for task in tasks]),
        )
        self._logger.info(f"[{public_id}] Uploaded {len(asset_set.assets)} variants")
        return asset_set

    async def delete_asset_set(self, folder: str, public_id: str) -> List[str]:
        """Remove every variant of a set; returns keys the store failed to delete."""
        return await self._store.delete_many(self.asset_keys(folder, public_id))

    async def _upload_variant(
        self,
        variant: EncodedVariant,
        folder: str,
        public_id: str,
        semaphore: asyncio.Semaphore,
    ) -> UploadedAsset:
        key = build_asset_key(folder, variant.size_name, public_id, variant.codec)
        url = await self._put_with_retry(key, variant, semaphore)
        return UploadedAsset(
            size_name=variant.size_name,
            codec=variant.codec,
            remote_url=url,
            remote_id=key,
        )

    async def _put_once(
        self, key: str, variant: EncodedVariant, semaphore: asyncio.Semaphore
    ) -> str:
        # One slot per attempt; backoff sleeps happen outside it.
        try:
            async with semaphore:
                return await asyncio.wait_for(
                    self._store.put(key, variant.data, variant.codec.content_type),
                    timeout=self._config.upload_timeout,
                )
        except asyncio.TimeoutError as e:
            raise UploadTimeoutError(
                f"upload of {key} timed out after {self._config.upload_timeout}s"
            ) from e

    async def _abort(self, tasks, folder: str, public_id: str) -> None:
        for task in tasks:
            task.cancel()
        # Barrier: every sibling must have settled before cleanup starts.
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.rollback(folder, public_id)

    async def rollback(self, folder: str, public_id: str) -> None:
        """Best-effort delete of every key of a set; failures are logged, never raised."""
        keys = self.asset_keys(folder, public_id)
        try:
            failed = await self._store.delete_many(keys)
        except Exception as e:  # noqa: BLE001
            self._logger.error(
                f"[{public_id}] Rollback failed, {len(keys)} key(s) may be orphaned: {e}",
                exc_info=True,
            )
            return
        if failed:
            self._logger.error(f"[{public_id}] Rollback left orphaned keys: {failed}")
        else:
            self._logger.info(f"[{public_id}] Rolled back {len(keys)} key(s)")

    def _in_catalogue_order(self, assets: List[UploadedAsset]) -> List[UploadedAsset]:
        rank = {
            (spec.name, codec): i
            for i, (spec, codec) in enumerate(
                (spec, codec) for spec in self._config.variants for codec in self._config.codecs
            )
        }
        return sorted(assets, key=lambda a: rank.get((a.size_name, a.codec), len(rank)))

"""Factory helpers for creating configured pipeline components."""

from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Optional

from .logging_config import configure_multiprocessing_logging, current_log_level
from .models import PipelineConfig


class CpuExecutorFactory:
    """Builds the bounded pool that runs decode/normalize/resize/encode work."""

    @staticmethod
    def create_executor(config: PipelineConfig) -> Executor:
        """
        Create the CPU pool described by ``config``.

        ``process`` (default) sidesteps the GIL for the Python-level parts of
        rendering; ``thread`` avoids pickling and suits tests and callers
        that inject an unpicklable background remover.
        """
        workers = config.resolved_cpu_workers()
        if config.cpu_pool == "thread":
            return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="render")
        return ProcessPoolExecutor(
            max_workers=workers,
            initializer=configure_multiprocessing_logging,
            initargs=(current_log_level(),),
        )


class PipelineFactory:
    """Factory for assembling an orchestrator around an asset store."""

    @staticmethod
    def create_pipeline(
        store,
        config: Optional[PipelineConfig] = None,
        logger=None,
        metrics_collector=None,
        background_remover=None,
    ):
        """Create a fully configured PipelineOrchestrator."""
        from ..pipeline import PipelineOrchestrator

        config = config or PipelineConfig()
        return PipelineOrchestrator(
            store=store,
            config=config,
            logger=logger,
            metrics_collector=metrics_collector,
            background_remover=background_remover,
            cpu_executor=CpuExecutorFactory.create_executor(config),
            owns_executor=True,
        )

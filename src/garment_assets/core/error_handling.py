# src/garment_assets/core/error_handling.py

import asyncio
import functools
import logging

from botocore.exceptions import ClientError as BotocoreClientError

from .exceptions import UploadFailureError

NON_RETRYABLE_STORE_ERROR_CODES = (
    'AccessDenied',
    'InvalidAccessKeyId',
    'NoSuchBucket',
    'SignatureDoesNotMatch',
    'InvalidBucketName',
)


def is_retryable_upload_error(error: BaseException) -> bool:
    """
    Decide whether a failed upload attempt is worth repeating.

    Throttling, 5xx responses, timeouts and connection errors are retried;
    credential and missing-bucket errors fail immediately.
    """
    cause = error.__cause__ if isinstance(error, UploadFailureError) else error
    if isinstance(cause, BotocoreClientError):
        error_code = cause.response.get('Error', {}).get('Code')
        return error_code not in NON_RETRYABLE_STORE_ERROR_CODES
    return True


def retry_async_operation(max_attempts=3, initial_delay=0.5, backoff_factor=2):
    """
    Decorator to retry an async store operation with exponential backoff.

    Only UploadFailureError is retried. The last error is re-raised once
    attempts are exhausted or the error is not retryable.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            delay = initial_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except UploadFailureError as e:
                    if not is_retryable_upload_error(e):
                        logger.error(f"Store operation '{func.__name__}' failed with non-retryable error: {e}")
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            f"Store operation '{func.__name__}' failed after {max_attempts} attempts. Error: {e}"
                        )
                        raise
                    logger.info(
                        f"Store operation '{func.__name__}' failed. Attempt {attempt}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )
                    await asyncio.sleep(delay)
                    delay *= backoff_factor
        return wrapper
    return decorator


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{error_detail['item']}': {error_detail['error']}"
                )
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif not self.errors:
            self.logger.info(f"{self.operation_name} completed successfully.")
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item of the batch.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): Identifies the item that failed (e.g. image index and public id).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KnowledgeBaseError(Exception):
    """
    Base class for every error the pipeline and the query service raise on
    purpose. `code` is stable and safe to match on; `details` carries
    structured context for logs and HTTP bodies.
    """

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class DataNotFoundError(KnowledgeBaseError):
    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found: {identifier}" if identifier else f"{resource} not found"
        super().__init__(message, "DATA_NOT_FOUND", {"resource": resource, "identifier": identifier})


class ServiceNotInitializedError(KnowledgeBaseError):
    def __init__(self):
        super().__init__(
            "Query service not initialized. Call initialize() or load_from_file() first.",
            "SERVICE_NOT_INITIALIZED",
        )


class InvalidDataError(KnowledgeBaseError):
    def __init__(self, message: str, validation_errors: Optional[List[Any]] = None):
        super().__init__(message, "INVALID_DATA", {"validation_errors": validation_errors or []})
        self.validation_errors = validation_errors or []


class CacheError(KnowledgeBaseError):
    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Cache operation failed: {operation}",
            "CACHE_ERROR",
            {"operation": operation, "cause": str(cause) if cause else None},
        )


NON_RETRYABLE_ERRORS = (DataNotFoundError, ServiceNotInitializedError, InvalidDataError)


@dataclass
class ErrorHandlingConfig:
    enable_retry: bool = True
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    enable_fallback: bool = True
    log_errors: bool = True


class ErrorHandler:
    """
    Retry/fallback policy for fallible calls. Deterministic failures
    (lookup misses, bad state, invalid data) are never retried; everything
    else is retried with a linear backoff of base_delay * attempt, capped at
    max_delay.
    """

    def __init__(self, config: Optional[ErrorHandlingConfig] = None, sleep: Callable[[float], None] = time.sleep):
        self.config = config or ErrorHandlingConfig()
        self._sleep = sleep

    def with_retry(self, operation: Callable[[], T], operation_name: str) -> T:
        attempts = self.config.max_retries if self.config.enable_retry else 1
        attempts = max(1, attempts)

        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except Exception as exc:  # noqa: BLE001
                if self.config.log_errors:
                    logger.warning("%s attempt %s failed: %s", operation_name, attempt, exc)
                if attempt < attempts and self.should_retry(exc):
                    self._sleep(self.backoff_delay(attempt))
                    continue
                if self.config.log_errors:
                    logger.error("%s failed after %s attempt(s): %s", operation_name, attempt, exc)
                raise

    def with_fallback(
        self,
        primary: Callable[[], T],
        fallback: Callable[[], T],
        operation_name: str,
    ) -> T:
        try:
            return primary()
        except Exception as exc:  # noqa: BLE001
            if not self.config.enable_fallback:
                raise
            if self.config.log_errors:
                logger.warning("%s primary operation failed, using fallback: %s", operation_name, exc)
            return fallback()

    def handle_error(self, error: BaseException, context: str) -> KnowledgeBaseError:
        if isinstance(error, KnowledgeBaseError):
            return error
        return KnowledgeBaseError(
            f"{context}: {error}",
            "UNKNOWN_ERROR",
            {"original_error": str(error), "type": type(error).__name__},
        )

    def backoff_delay(self, attempt: int) -> float:
        return min(self.config.base_delay * attempt, self.config.max_delay)

    @staticmethod
    def should_retry(error: BaseException) -> bool:
        return not isinstance(error, NON_RETRYABLE_ERRORS)


def assert_initialized(is_initialized: bool) -> None:
    if not is_initialized:
        raise ServiceNotInitializedError()


def assert_data_exists(data: Optional[T], resource: str, identifier: Optional[str] = None) -> T:
    if data is None:
        raise DataNotFoundError(resource, identifier)
    return data

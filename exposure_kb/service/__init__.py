"""
Runtime service exports. The query service itself lives in
`exposure_kb.service.query` because it depends on the pipeline models,
which in turn depend on the error types exported here.
"""

from .cache import CacheConfig, CacheManager, CacheStats, KnowledgeBaseCache
from .errors import (
    CacheError,
    DataNotFoundError,
    ErrorHandler,
    ErrorHandlingConfig,
    InvalidDataError,
    KnowledgeBaseError,
    ServiceNotInitializedError,
)

__all__ = [
    "CacheConfig",
    "CacheError",
    "CacheManager",
    "CacheStats",
    "DataNotFoundError",
    "ErrorHandler",
    "ErrorHandlingConfig",
    "InvalidDataError",
    "KnowledgeBaseCache",
    "KnowledgeBaseError",
    "ServiceNotInitializedError",
]

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from exposure_kb.pipeline.storage import KNOWLEDGE_BASE_FILENAME
from exposure_kb.service.cache import CacheConfig, KnowledgeBaseCache
from exposure_kb.service.query import QueryService

logger = logging.getLogger(__name__)


def knowledge_base_path() -> Path:
    return Path(os.getenv("KNOWLEDGE_BASE_PATH", f"./data/{KNOWLEDGE_BASE_FILENAME}"))


@lru_cache(maxsize=1)
def get_cache() -> KnowledgeBaseCache:
    max_size = int(os.getenv("CACHE_MAX_SIZE", "500"))
    default_ttl = float(os.getenv("CACHE_DEFAULT_TTL", "600"))
    return KnowledgeBaseCache(CacheConfig(default_ttl=default_ttl, max_size=max_size))


@lru_cache(maxsize=1)
def get_query_service() -> QueryService:
    service = QueryService(cache=get_cache())
    path = knowledge_base_path()
    if path.exists():
        service.load_from_file(path)
    else:
        # Queries answer 503 until a knowledge base is built and the app restarts.
        logger.warning("Knowledge base not found at %s; service left uninitialized", path)
    return service

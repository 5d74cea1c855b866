"""
분산 캐시 클라이언트 및 데이터셋 캐시 계층
"""

from app.db.redis_client import RedisCache, init_redis
from app.db.cache import (
    CacheTier,
    MemoryTier,
    RedisTier,
    SnapshotFileTier,
    TieredDatasetStore,
)

__all__ = [
    "RedisCache",
    "init_redis",
    "CacheTier",
    "MemoryTier",
    "RedisTier",
    "SnapshotFileTier",
    "TieredDatasetStore",
]

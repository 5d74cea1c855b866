"""
데이터셋 캐시 계층 (tier chain)

조회 순서: 프로세스 메모리 => Redis => 로컬 스냅샷 파일
- 먼저 유효한(TTL 이내) 엔트리를 찾은 계층이 응답
- 하위 계층에서 찾으면 메모리로 승격
- 갱신 시 모든 계층에 기록, 계층별 실패는 로그만 남기고 계속 진행

Redis 계층은 1도 격자 단위 파티션으로 나눠 저장
=> 배치 매칭 시 필요한 파티션만 MGET 한 번으로 읽음
=> 세대(generation)별 키에 파티션을 먼저 쓰고 meta 포인터를 마지막에 교체
"""

import json
import logging
import math
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from app.algorithms.geo_grid import KM_PER_DEGREE, cell_key_for
from app.db.redis_client import RedisCache
from app.models.domain import CacheEntry, StationRecord

logger = logging.getLogger(__name__)

DatasetEntry = CacheEntry[List[StationRecord]]

PARTITION_PRECISION = 0  # 1도 격자


def partition_key_for(lat: float, lng: float) -> str:
    return cell_key_for(lat, lng, PARTITION_PRECISION)


def partitions_around(lat: float, lng: float, radius_km: float) -> Set[str]:
    """점 주변 radius_km 사각형이 걸치는 파티션 키 (경계 근처 누락 방지)"""
    dlat = radius_km / KM_PER_DEGREE
    dlng = radius_km / (KM_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))
    return {
        partition_key_for(lat + sy * dlat, lng + sx * dlng)
        for sy in (-1, 0, 1)
        for sx in (-1, 0, 1)
    }


class CacheTier(ABC):
    name = "tier"
    # 하위 계층 hit 시 이 계층으로 승격할지
    promotable = False

    @abstractmethod
    async def load(self) -> Optional[DatasetEntry]:
        ...

    async def load_partitions(self, partitions: Iterable[str]) -> Optional[DatasetEntry]:
        """일부 파티션만 조회, 파티션 구분이 없는 계층은 전체 반환"""
        return await self.load()

    @abstractmethod
    async def store(self, entry: DatasetEntry) -> bool:
        ...


class MemoryTier(CacheTier):
    """프로세스 메모리, 참조 교체만 하므로 읽는 쪽은 이전 or 새 데이터셋만 봄"""

    name = "memory"
    promotable = True

    def __init__(self):
        self._entry: Optional[DatasetEntry] = None

    async def load(self) -> Optional[DatasetEntry]:
        return self._entry

    async def store(self, entry: DatasetEntry) -> bool:
        self._entry = entry
        return True

    def clear(self) -> None:
        self._entry = None


class RedisTier(CacheTier):
    """
    {ns}:meta                   => {generation, fetched_at, ttl, partitions, record_count}
    {ns}:{generation}:part:{셀} => 해당 1도 격자의 레코드 목록
    """

    name = "redis"

    def __init__(self, cache: RedisCache, namespace: str):
        self.cache = cache
        self.namespace = namespace

    @property
    def meta_key(self) -> str:
        return f"{self.namespace}:meta"

    def partition_key(self, generation: str, partition: str) -> str:
        return f"{self.namespace}:{generation}:part:{partition}"

    async def _load_meta(self) -> Optional[Dict[str, Any]]:
        meta = await self.cache.get(self.meta_key)
        if not meta or "generation" not in meta:
            return None
        return meta

    async def _read(self, meta: Dict[str, Any], partitions: List[str]) -> Optional[DatasetEntry]:
        keys = [self.partition_key(meta["generation"], p) for p in partitions]
        values = await self.cache.mget(keys)

        records: List[StationRecord] = []
        for key, value in zip(keys, values):
            if value is None:
                # meta는 있는데 파티션이 없음 => 만료 or 기록 실패, 불완전한 세대는 사용 X
                logger.warning(f"Redis 파티션 누락: {key}")
                return None
            records.extend(StationRecord.from_dict(r) for r in value)

        return CacheEntry(
            data=records, fetched_at=float(meta["fetched_at"]), ttl=float(meta["ttl"])
        )

    async def load(self) -> Optional[DatasetEntry]:
        meta = await self._load_meta()
        if meta is None:
            return None
        return await self._read(meta, list(meta.get("partitions", [])))

    async def load_partitions(self, partitions: Iterable[str]) -> Optional[DatasetEntry]:
        meta = await self._load_meta()
        if meta is None:
            return None
        available = set(meta.get("partitions", []))
        wanted = sorted(p for p in set(partitions) if p in available)
        return await self._read(meta, wanted)

    async def store(self, entry: DatasetEntry) -> bool:
        if not self.cache.enabled:
            return False

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for record in entry.data:
            grouped.setdefault(partition_key_for(record.lat, record.lng), []).append(
                record.to_dict()
            )

        generation = str(int(entry.fetched_at * 1000))
        ttl = max(1, int(entry.ttl))
        writes: List[Tuple[str, Any, int]] = [
            (self.partition_key(generation, p), rows, ttl) for p, rows in grouped.items()
        ]

        saved = await self.cache.pipeline_set(writes)
        if saved != len(writes):
            # 일부 파티션 실패 => meta를 교체하지 않아 이전 세대 유지
            logger.error(
                f"Redis 파티션 저장 불완전: {self.namespace} {saved}/{len(writes)}, meta 교체 생략"
            )
            return False

        meta = {
            "generation": generation,
            "fetched_at": entry.fetched_at,
            "ttl": entry.ttl,
            "partitions": sorted(grouped),
            "record_count": len(entry.data),
        }
        return await self.cache.set(self.meta_key, meta, ttl)


class SnapshotFileTier(CacheTier):
    """로컬 JSON 스냅샷 (임시 파일에 쓴 뒤 os.replace로 원자적 교체)"""

    name = "snapshot"

    def __init__(self, path: str):
        self.path = path

    async def load(self) -> Optional[DatasetEntry]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return CacheEntry(
                data=[StationRecord.from_dict(r) for r in payload["records"]],
                fetched_at=float(payload["fetched_at"]),
                ttl=float(payload["ttl"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"스냅샷 파일 읽기 실패: {self.path}, 오류: {e}")
            return None

    async def store(self, entry: DatasetEntry) -> bool:
        tmp_path = f"{self.path}.tmp"
        payload = {
            "fetched_at": entry.fetched_at,
            "ttl": entry.ttl,
            "records": [r.to_dict() for r in entry.data],
        }
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.error(f"스냅샷 파일 저장 실패: {self.path}, 오류: {e}")
            return False


class TieredDatasetStore:
    """계층 순서대로 조회, 갱신은 전 계층 기록"""

    def __init__(self, tiers: List[CacheTier], name: str = "dataset"):
        self.tiers = tiers
        self.name = name

    def get_tier(self, name: str) -> Optional[CacheTier]:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        return None

    async def load(self, now: Optional[float] = None) -> Optional[Tuple[DatasetEntry, str]]:
        """유효한 엔트리와 응답한 계층 이름, 모두 없거나 만료면 None"""
        now = time.time() if now is None else now

        for index, tier in enumerate(self.tiers):
            entry = await self._safe_load(tier, tier.load())
            if entry is None or not entry.is_valid(now):
                continue

            if index > 0:
                logger.info(f"[{self.name}] {tier.name} 계층 hit => 상위 계층 승격")
                for upper in self.tiers[:index]:
                    if upper.promotable:
                        await upper.store(entry)
            return entry, tier.name

        logger.debug(f"[{self.name}] 모든 계층 miss")
        return None

    async def load_partitions(
        self, partitions: Iterable[str], now: Optional[float] = None
    ) -> Optional[Tuple[DatasetEntry, str]]:
        """
        일부 파티션만 필요한 조회 (배치 매칭)

        부분 데이터이므로 승격하지 않음
        """
        now = time.time() if now is None else now
        partitions = set(partitions)

        for tier in self.tiers:
            entry = await self._safe_load(tier, tier.load_partitions(partitions))
            if entry is not None and entry.is_valid(now):
                return entry, tier.name
        return None

    async def store(self, entry: DatasetEntry) -> Dict[str, bool]:
        results: Dict[str, bool] = {}
        for tier in self.tiers:
            try:
                results[tier.name] = await tier.store(entry)
            except Exception as e:
                logger.error(f"[{self.name}] {tier.name} 계층 저장 실패: {e}", exc_info=True)
                results[tier.name] = False

            if not results[tier.name]:
                logger.warning(f"[{self.name}] {tier.name} 계층에 기록되지 않음")
        return results

    async def _safe_load(self, tier: CacheTier, pending) -> Optional[DatasetEntry]:
        try:
            return await pending
        except Exception as e:
            logger.error(f"[{self.name}] {tier.name} 계층 조회 실패: {e}", exc_info=True)
            return None

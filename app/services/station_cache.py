"""
주유소/충전소 데이터셋 캐시

외부 기관 데이터(가격, 충전기 정보)를 지역 단위로 수집하여
메모리 => Redis => 스냅샷 파일 계층에 저장하고,
카카오 장소와 이름 유사도 + 좌표 근접도로 매칭

- 카카오 장소 ID와 기관 ID는 체계가 다르므로 ID로 매칭하지 않음
- 주소(도로명 => 지번) 일치를 가장 먼저 보고, 그다음 이름 유사도 + 좌표
- 매칭 실패는 예외가 아니라 None
- 갱신은 전체 데이터셋 교체 => 읽는 쪽은 이전 or 새 데이터셋만 봄
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.algorithms.geo_grid import GeoGridIndex
from app.algorithms.geometry import haversine_distance
from app.algorithms.name_matching import NameNormalizer, addresses_match, name_similarity
from app.clients.base import StationProvider
from app.core.config import settings
from app.core.exceptions import GilfinderException
from app.db.cache import (
    DatasetEntry,
    MemoryTier,
    RedisTier,
    SnapshotFileTier,
    TieredDatasetStore,
    partitions_around,
)
from app.db.redis_client import RedisCache
from app.models.domain import (
    BatchRefreshResult,
    CacheEntry,
    Coordinate,
    RefreshResult,
    StationQuery,
    StationRecord,
)

logger = logging.getLogger(__name__)

# 매칭 점수가 이보다 작게 차이나면 동점으로 간주
_SCORE_EPSILON = 1e-9


class StationDatasetCache:
    def __init__(
        self,
        provider: StationProvider,
        namespace: str,
        normalizer: NameNormalizer,
        redis_cache: Optional[RedisCache] = None,
        snapshot_path: Optional[str] = None,
        ttl_seconds: int = settings.STATION_CACHE_TTL_SECONDS,
        match_radius_m: float = settings.STATION_MATCH_RADIUS_M,
        similarity_threshold: float = settings.NAME_SIMILARITY_THRESHOLD,
        address_match_radius_m: float = settings.ADDRESS_MATCH_RADIUS_M,
        grid_precision: int = settings.GEO_GRID_PRECISION,
        refresh_concurrency: int = settings.REFRESH_CONCURRENCY,
        batch_pause_seconds: float = settings.REFRESH_BATCH_PAUSE_SECONDS,
        allow_live_fetch: bool = False,
        api_key: str = "",
        live_fetch_retry_seconds: float = settings.LIVE_FETCH_RETRY_SECONDS,
        store: Optional[TieredDatasetStore] = None,
    ):
        self.provider = provider
        self.namespace = namespace
        self.normalize = normalizer
        self.redis_cache = redis_cache or RedisCache(None)
        self.ttl_seconds = ttl_seconds
        self.match_radius_m = match_radius_m
        self.similarity_threshold = similarity_threshold
        self.address_match_radius_m = address_match_radius_m
        self.grid_precision = grid_precision
        self.refresh_concurrency = max(1, refresh_concurrency)
        self.batch_pause_seconds = batch_pause_seconds
        self.allow_live_fetch = allow_live_fetch
        self.api_key = api_key
        self.live_fetch_retry_seconds = live_fetch_retry_seconds

        if store is None:
            tiers = [MemoryTier(), RedisTier(self.redis_cache, namespace)]
            if snapshot_path:
                tiers.append(SnapshotFileTier(snapshot_path))
            store = TieredDatasetStore(tiers, name=namespace)
        self.store = store

        # (엔트리, 격자) 쌍을 한 번에 교체
        self._indexed: Optional[Tuple[DatasetEntry, GeoGridIndex]] = None

        # 동시에 들어온 요청들은 진행 중인 실시간 갱신 하나를 같이 기다림
        self._live_fetch_task: Optional[asyncio.Task] = None
        self._live_fetch_failed_at: Optional[float] = None

    @property
    def cursor_key(self) -> str:
        return f"{self.namespace}:refresh_cursor"

    async def initialize(self) -> None:
        """서버 시작 시 하위 계층에 남은 데이터셋을 메모리로 올림 (없으면 그대로)"""
        loaded = await self.store.load()
        if loaded is None:
            logger.info(f"[{self.namespace}] 캐시 데이터 없음 => 첫 갱신 전까지 매칭 불가")
            return
        entry, tier_name = loaded
        self._index(entry)
        logger.info(f"[{self.namespace}] {tier_name} 계층에서 {len(entry.data)}개 레코드 로드")

    async def shutdown(self) -> None:
        if self._live_fetch_task is not None and not self._live_fetch_task.done():
            self._live_fetch_task.cancel()
        self._indexed = None
        logger.info(f"[{self.namespace}] 캐시 정리 완료")

    # ---------------------------------------------------------------- 조회

    def _index(self, entry: DatasetEntry) -> GeoGridIndex:
        indexed = self._indexed
        if indexed is not None and indexed[0] is entry:
            return indexed[1]
        grid = GeoGridIndex.from_records(entry.data, self.grid_precision)
        self._indexed = (entry, grid)
        return grid

    async def _current(self) -> Optional[Tuple[DatasetEntry, GeoGridIndex]]:
        loaded = await self.store.load()
        if loaded is None:
            loaded = await self._live_fetch()
            if loaded is None:
                return None
        entry, _ = loaded
        return entry, self._index(entry)

    async def _live_fetch(self) -> Optional[Tuple[DatasetEntry, str]]:
        """
        모든 계층이 비었을 때 업스트림 직접 조회 (설정된 인스턴스만)

        - 진행 중인 갱신이 있으면 새로 시작하지 않고 같은 작업을 기다림
        - 직전 실시간 갱신이 실패/0건이면 live_fetch_retry_seconds 동안 바로 None
        """
        if not (self.allow_live_fetch and self.api_key):
            return None

        task = self._live_fetch_task
        if task is None or task.done():
            failed_at = self._live_fetch_failed_at
            if failed_at is not None and time.monotonic() - failed_at < self.live_fetch_retry_seconds:
                logger.debug(f"[{self.namespace}] 최근 실시간 갱신 실패 => 재시도 대기 중")
                return None
            task = asyncio.ensure_future(self._run_live_fetch())
            self._live_fetch_task = task

        # 기다리던 요청 하나가 취소돼도 갱신 자체는 계속
        return await asyncio.shield(task)

    async def _run_live_fetch(self) -> Optional[Tuple[DatasetEntry, str]]:
        logger.info(f"[{self.namespace}] 캐시 없음 => 실시간 갱신 시도")
        try:
            result = await self.refresh(self.api_key)
        except Exception:
            self._live_fetch_failed_at = time.monotonic()
            raise

        if result.total_records == 0:
            logger.warning(
                f"[{self.namespace}] 실시간 갱신 결과 없음 => {self.live_fetch_retry_seconds}초간 재시도 X"
            )
            self._live_fetch_failed_at = time.monotonic()
            return None

        self._live_fetch_failed_at = None
        return await self.store.load()

    async def get_cache_status(self) -> Dict[str, Any]:
        loaded = await self.store.load()
        if loaded is None:
            return {
                "has_cached_data": False,
                "station_count": 0,
                "updated_at": None,
                "age_minutes": None,
            }

        entry, tier_name = loaded
        return {
            "has_cached_data": True,
            "station_count": len(entry.data),
            "updated_at": datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc).isoformat(),
            "age_minutes": entry.age_minutes(),
            "tier": tier_name,
        }

    async def find_nearby(
        self, lat: float, lng: float, radius_km: float
    ) -> List[Tuple[StationRecord, float]]:
        """반경 내 (레코드, 거리 km), 가까운 순"""
        current = await self._current()
        if current is None:
            return []
        return current[1].nearby(lat, lng, radius_km)

    # ---------------------------------------------------------------- 매칭

    def _match_by_address(
        self, grid: GeoGridIndex, lat: float, lng: float, address: str, road_address: str
    ) -> Optional[StationRecord]:
        """address_match_radius_m 이내에서 가까운 순으로 도로명, 지번 주소 일치 확인"""
        if not (address or road_address):
            return None
        for record, _ in grid.nearby(lat, lng, self.address_match_radius_m / 1000):
            if road_address and addresses_match(road_address, record.road_address):
                return record
            if address and addresses_match(address, record.address):
                return record
        return None

    def _select_match(
        self,
        grid: GeoGridIndex,
        name: str,
        lat: float,
        lng: float,
        address: str = "",
        road_address: str = "",
    ) -> Optional[StationRecord]:
        """
        (0) 주소 일치 => 그 레코드 (좌표 오차가 커도 가장 확실한 근거)
        (a) 이름 유사도 >= threshold 이면서 반경 내 => 최고 점수, 동점이면 가까운 쪽
            점수와 거리까지 같으면 판단 불가 => None
        (b) (a)가 없고 반경 내 레코드가 정확히 1개 => 그 레코드
        (c) 그 외 None
        """
        by_address = self._match_by_address(grid, lat, lng, address, road_address)
        if by_address is not None:
            return by_address

        nearby = grid.nearby(lat, lng, self.match_radius_m / 1000)
        if not nearby:
            return None

        target = self.normalize(name)
        scored = []
        for record, distance_km in nearby:
            score = name_similarity(target, self.normalize(record.name))
            if score >= self.similarity_threshold:
                scored.append((score, distance_km, record))

        if scored:
            scored.sort(key=lambda s: (-s[0], s[1]))
            if len(scored) > 1:
                best, second = scored[0], scored[1]
                if (
                    abs(best[0] - second[0]) < _SCORE_EPSILON
                    and abs(best[1] - second[1]) < _SCORE_EPSILON
                    and best[2].external_id != second[2].external_id
                ):
                    logger.debug(f"[{self.namespace}] 매칭 모호 => None: {name}")
                    return None
            return scored[0][2]

        if len(nearby) == 1:
            return nearby[0][0]
        return None

    async def match_station(
        self, name: str, lat: float, lng: float, address: str = "", road_address: str = ""
    ) -> Optional[StationRecord]:
        current = await self._current()
        if current is None:
            return None
        return self._select_match(current[1], name, lat, lng, address, road_address)

    async def match_by_coordinates(
        self, queries: Sequence[StationQuery]
    ) -> List[Optional[StationRecord]]:
        """
        배치 매칭 => queries와 같은 순서

        메모리에 데이터셋이 있으면 그대로 사용,
        없으면 쿼리들이 걸치는 파티션만 한 번에 읽어 임시 격자 구성 (승격 X)
        """
        if not queries:
            return []

        indexed = self._indexed
        if indexed is not None and indexed[0].is_valid():
            grid = indexed[1]
        else:
            grid = await self._grid_for_queries(queries)
            if grid is None:
                return [None] * len(queries)

        return [
            self._select_match(grid, q.name, q.lat, q.lng, q.address, q.road_address)
            for q in queries
        ]

    async def _grid_for_queries(self, queries: Sequence[StationQuery]) -> Optional[GeoGridIndex]:
        radius_km = max(self.match_radius_m, self.address_match_radius_m) / 1000
        partitions = set()
        for q in queries:
            partitions |= partitions_around(q.lat, q.lng, radius_km)

        loaded = await self.store.load_partitions(partitions)
        if loaded is None:
            current = await self._current()
            return current[1] if current is not None else None

        entry, tier_name = loaded
        if tier_name == "memory":
            return self._index(entry)
        return GeoGridIndex.from_records(entry.data, self.grid_precision)

    # ---------------------------------------------------------------- 갱신

    async def _fetch_regions(
        self, api_key: str, regions: Sequence[Any]
    ) -> Tuple[Dict[str, List[StationRecord]], int, int, Optional[str]]:
        """
        동시 refresh_concurrency개씩 배치 조회, 배치 사이 짧게 대기

        실패한 지역은 건너뛰고 (지역 id => 레코드) 반환
        """
        fetched: Dict[str, List[StationRecord]] = {}
        api_calls = 0
        errors = 0
        first_error: Optional[str] = None

        for start in range(0, len(regions), self.refresh_concurrency):
            batch = regions[start : start + self.refresh_concurrency]
            api_calls += len(batch)
            results = await asyncio.gather(
                *(self.provider.fetch_region(api_key, region) for region in batch),
                return_exceptions=True,
            )

            for region, result in zip(batch, results):
                region_id = self.provider.region_id(region)
                if isinstance(result, BaseException):
                    errors += 1
                    if first_error is None:
                        first_error = f"{region_id}: {result}"
                    if isinstance(result, GilfinderException):
                        logger.warning(f"[{self.namespace}] 지역 {region_id} 조회 실패: {result.message}")
                    else:
                        logger.error(
                            f"[{self.namespace}] 지역 {region_id} 조회 중 예상치 못한 오류: {result}",
                            exc_info=result,
                        )
                    continue
                fetched[region_id] = result

            if start + self.refresh_concurrency < len(regions) and self.batch_pause_seconds > 0:
                await asyncio.sleep(self.batch_pause_seconds)

        if errors:
            await self.redis_cache.increment_error_count(f"{self.namespace}_refresh")
        return fetched, api_calls, errors, first_error

    @staticmethod
    def _dedupe(records: Iterable[StationRecord]) -> List[StationRecord]:
        """external_id 기준 중복 제거 (조회 지점 반경이 겹침), 나중 값 우선"""
        unique: Dict[str, StationRecord] = {}
        for record in records:
            unique[record.external_id] = record
        return list(unique.values())

    async def _commit(self, records: List[StationRecord]) -> DatasetEntry:
        entry: DatasetEntry = CacheEntry(data=records, fetched_at=time.time(), ttl=self.ttl_seconds)
        # 격자를 먼저 만들고 모든 계층에 기록
        self._indexed = (entry, GeoGridIndex.from_records(records, self.grid_precision))
        results = await self.store.store(entry)
        logger.info(f"[{self.namespace}] 데이터셋 커밋: {len(records)}개, 계층별 결과 {results}")
        return entry

    async def refresh(
        self, api_key: str, region_params: Optional[Sequence[Any]] = None
    ) -> RefreshResult:
        """
        전체 지역 갱신

        일부 지역 실패 시 성공한 지역만으로 커밋, 전부 실패하면 기존 데이터 유지
        """
        regions = list(region_params) if region_params is not None else self.provider.default_regions()

        logger.info(f"[{self.namespace}] 전체 갱신 시작: {len(regions)}개 지역")
        fetched, api_calls, errors, first_error = await self._fetch_regions(api_key, regions)

        records = self._dedupe(r for rows in fetched.values() for r in rows)
        if records:
            await self._commit(records)
        else:
            logger.warning(f"[{self.namespace}] 수집된 레코드 없음 => 기존 데이터 유지")

        logger.info(
            f"[{self.namespace}] 전체 갱신 완료: {len(records)}개, "
            f"API {api_calls}회, 실패 {errors}회"
        )
        return RefreshResult(
            total_records=len(records),
            api_calls=api_calls,
            errors=errors,
            first_error=first_error,
        )

    async def refresh_batch(self, api_key: str, offset: int, batch_size: int) -> BatchRefreshResult:
        """
        지역 일부만 갱신 (실행 시간 제한이 있는 호출용)

        갱신한 지역의 레코드만 교체하고 나머지는 유지한 채 새 데이터셋으로 커밋
        """
        regions = self.provider.default_regions()
        offset = max(0, offset) if offset < len(regions) else 0
        batch = regions[offset : offset + max(1, batch_size)]
        next_offset = offset + len(batch)
        done = next_offset >= len(regions)

        fetched, api_calls, errors, first_error = await self._fetch_regions(api_key, batch)

        loaded = await self.store.load()
        existing = loaded[0].data if loaded is not None else []
        refreshed = set(fetched)
        kept = [r for r in existing if r.region not in refreshed]
        records = self._dedupe(kept + [r for rows in fetched.values() for r in rows])

        if fetched:
            await self._commit(records)

        logger.info(
            f"[{self.namespace}] 배치 갱신: 지역 {sorted(refreshed)}, "
            f"전체 {len(records)}개, 다음 offset {0 if done else next_offset}"
        )
        return BatchRefreshResult(
            total_records=len(records),
            api_calls=api_calls,
            errors=errors,
            first_error=first_error,
            regions_refreshed=sorted(refreshed),
            next_offset=0 if done else next_offset,
            done=done,
        )

    async def refresh_next_batch(self, api_key: str, batch_size: int) -> BatchRefreshResult:
        """Redis에 저장된 커서부터 배치 갱신 후 커서 전진 (끝나면 0으로)"""
        cursor = await self.redis_cache.get(self.cursor_key)
        offset = int(cursor) if isinstance(cursor, int) else 0

        result = await self.refresh_batch(api_key, offset, batch_size)
        await self.redis_cache.set(self.cursor_key, result.next_offset, self.ttl_seconds)
        return result

    async def build_grid_from_redis(self) -> Dict[str, int]:
        """Redis 계층만으로 격자 재생성 (외부 API 호출 X)"""
        redis_tier = self.store.get_tier("redis")
        entry = await redis_tier.load() if redis_tier is not None else None
        if entry is None or not entry.is_valid():
            logger.warning(f"[{self.namespace}] Redis 데이터 없음 => 격자 재생성 생략")
            return {"cell_count": 0, "record_count": 0}

        grid = GeoGridIndex.from_records(entry.data, self.grid_precision)
        self._indexed = (entry, grid)
        memory_tier = self.store.get_tier("memory")
        if memory_tier is not None:
            await memory_tier.store(entry)

        logger.info(
            f"[{self.namespace}] 격자 재생성: 셀 {grid.cell_count}개, 레코드 {grid.record_count}개"
        )
        return {"cell_count": grid.cell_count, "record_count": grid.record_count}


def distance_m(record: StationRecord, lat: float, lng: float) -> int:
    """레코드 좌표와 조회 좌표 사이 거리 (m)"""
    distance_km = haversine_distance(Coordinate(record.lat, record.lng), Coordinate(lat, lng))
    return int(round(distance_km * 1000))

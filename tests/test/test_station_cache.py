"""
StationDatasetCache 테스트 (매칭, 갱신, 계층 로드)
"""

import asyncio
import pytest
from dataclasses import replace
from typing import Dict, List

from app.algorithms.name_matching import normalize_ev_name, normalize_fuel_name
from app.clients.base import StationProvider
from app.core.config import settings
from app.core.exceptions import UpstreamUnavailableException
from app.models.domain import StationQuery, StationRecord
from app.services.station_cache import StationDatasetCache, distance_m
from app.services.station_cache_factory import create_ev_cache, create_fuel_cache, create_fuel_caches


class FakeProvider(StationProvider):
    """지역 id => 레코드 목록, failing에 있는 지역은 조회 실패"""

    name = "fake"

    def __init__(self, data: Dict[str, List[StationRecord]], failing=()):
        self.data = data
        self.failing = set(failing)
        self.calls: List[str] = []

    def default_regions(self):
        return sorted(set(self.data) | self.failing)

    def region_id(self, region):
        return region

    async def fetch_region(self, api_key, region):
        self.calls.append(region)
        if region in self.failing:
            raise UpstreamUnavailableException(f"{region} 조회 실패", source="fake")
        return [replace(r, region=region) for r in self.data.get(region, [])]


class SlowProvider(FakeProvider):
    """조회마다 실제로 양보 => 동시 요청이 서로 끼어들 수 있음"""

    async def fetch_region(self, api_key, region):
        await asyncio.sleep(0.01)
        return await super().fetch_region(api_key, region)


def _station(external_id, name, lat, lng, **attributes):
    return StationRecord(external_id=external_id, name=name, lat=lat, lng=lng, attributes=attributes)


def _make_cache(provider, redis_cache=None, namespace="fuel", **kwargs):
    kwargs.setdefault("batch_pause_seconds", 0)
    return StationDatasetCache(
        provider=provider,
        namespace=namespace,
        normalizer=normalize_fuel_name,
        redis_cache=redis_cache,
        **kwargs,
    )


@pytest.fixture
def gangnam_provider(sample_fuel_stations):
    return FakeProvider({"gangnam": sample_fuel_stations})


class TestMatching:
    """이름 유사도 + 좌표 근접도 매칭 테스트"""

    @pytest.mark.asyncio
    async def test_match_by_name_and_location(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        # 카카오 좌표는 기관 좌표와 수 m 차이
        record = await cache.match_station("GS칼텍스 역삼주유소", 37.50040, 127.03640)

        assert record.external_id == "A0000002"
        assert record.attributes["price"] == 1700

    @pytest.mark.asyncio
    async def test_best_name_wins_over_distance(self):
        provider = FakeProvider(
            {
                "r": [
                    _station("N1", "강남주유소", 37.50010, 127.0),
                    _station("N2", "역삼주유소", 37.50030, 127.0),
                ]
            }
        )
        cache = _make_cache(provider)
        await cache.refresh("key")

        record = await cache.match_station("역삼셀프주유소", 37.5, 127.0)

        assert record.external_id == "N2"

    @pytest.mark.asyncio
    async def test_exact_tie_is_ambiguous(self):
        """이름 점수와 거리가 모두 같은 서로 다른 레코드 => None"""
        provider = FakeProvider(
            {
                "r": [
                    _station("T1", "역삼주유소", 37.5001, 127.0),
                    _station("T2", "역삼주유소", 37.4999, 127.0),
                ]
            }
        )
        cache = _make_cache(provider)
        await cache.refresh("key")

        assert await cache.match_station("역삼주유소", 37.5, 127.0) is None

    @pytest.mark.asyncio
    async def test_single_candidate_without_name_match(self, gangnam_provider):
        """이름이 달라도 반경 내 레코드가 하나뿐이면 그 레코드"""
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        record = await cache.match_station("전혀 다른 이름", 37.49790, 127.02760)

        assert record.external_id == "A0000001"

    @pytest.mark.asyncio
    async def test_multiple_candidates_without_name_match(self):
        provider = FakeProvider(
            {
                "r": [
                    _station("M1", "강남주유소", 37.50010, 127.0),
                    _station("M2", "서초주유소", 37.49990, 127.0),
                ]
            }
        )
        cache = _make_cache(provider)
        await cache.refresh("key")

        assert await cache.match_station("대치주유소", 37.5, 127.0) is None

    @pytest.mark.asyncio
    async def test_nothing_within_radius(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        assert await cache.match_station("역삼주유소", 37.6, 127.1) is None

    @pytest.mark.asyncio
    async def test_no_data_returns_none(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)

        assert await cache.match_station("역삼주유소", 37.5, 127.0) is None
        assert gangnam_provider.calls == []

    @pytest.mark.asyncio
    async def test_batch_match_preserves_order(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        results = await cache.match_by_coordinates(
            [
                StationQuery("현대오일뱅크 양재주유소", 37.48416, 127.03433),
                StationQuery("없는 주유소", 36.0, 128.0),
                StationQuery("SK에너지 강남셀프주유소", 37.49790, 127.02760),
            ]
        )

        assert [r.external_id if r else None for r in results] == ["A0000003", None, "A0000001"]

    @pytest.mark.asyncio
    async def test_batch_match_empty(self, gangnam_provider):
        assert await _make_cache(gangnam_provider).match_by_coordinates([]) == []

    @pytest.mark.asyncio
    async def test_batch_match_reads_redis_partitions_without_promotion(
        self, gangnam_provider, redis_cache
    ):
        """다른 인스턴스가 Redis에 기록한 데이터로 매칭, 메모리에는 올리지 않음"""
        writer = _make_cache(gangnam_provider, redis_cache)
        await writer.refresh("key")
        reader = _make_cache(FakeProvider({}), redis_cache)

        results = await reader.match_by_coordinates(
            [StationQuery("GS칼텍스 역삼주유소", 37.50037, 127.03636)]
        )

        assert results[0].external_id == "A0000002"
        assert await reader.store.get_tier("memory").load() is None

    @pytest.mark.asyncio
    async def test_find_nearby(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        nearby = await cache.find_nearby(37.49790, 127.02760, 1.0)

        assert [r.external_id for r, _ in nearby] == ["A0000001", "A0000002"]

    def test_distance_m(self, sample_fuel_stations):
        assert distance_m(sample_fuel_stations[0], 37.49790, 127.02760) == 0
        assert 780 <= distance_m(sample_fuel_stations[0], 37.50037, 127.03636) <= 860


def _addressed(external_id, name, lat, lng, address="", road_address=""):
    return StationRecord(
        external_id=external_id,
        name=name,
        lat=lat,
        lng=lng,
        address=address,
        road_address=road_address,
    )


class TestAddressMatching:
    """주소 일치 매칭 (이름/좌표 매칭보다 우선)"""

    @pytest.mark.asyncio
    async def test_road_address_beyond_name_radius(self, gangnam_provider):
        """좌표가 약 500m 어긋나고 이름도 달라도 도로명주소가 같으면 매칭"""
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")

        record = await cache.match_station(
            "역삼동 알뜰 충전소",
            37.50500,
            127.03636,
            road_address="서울특별시 강남구 테헤란로 201 (역삼동)",
        )

        assert record.external_id == "A0000002"

    @pytest.mark.asyncio
    async def test_address_wins_over_name(self):
        provider = FakeProvider(
            {
                "r": [
                    _addressed("N1", "강남주유소", 37.50010, 127.0, road_address="서울 강남구 강남대로 1"),
                    _addressed("N2", "역삼주유소", 37.50020, 127.0, road_address="서울 강남구 강남대로 9"),
                ]
            }
        )
        cache = _make_cache(provider)
        await cache.refresh("key")

        record = await cache.match_station(
            "역삼주유소", 37.5, 127.0, road_address="서울 강남구 강남대로 1"
        )

        assert record.external_id == "N1"

    @pytest.mark.asyncio
    async def test_lot_address(self):
        provider = FakeProvider(
            {"r": [_addressed("L1", "역삼주유소", 37.5050, 127.0, address="서울 강남구 역삼동 736-1")]}
        )
        cache = _make_cache(provider)
        await cache.refresh("key")

        matched = await cache.match_station("다른 이름", 37.5, 127.0, address="서울 강남구 역삼동 736-1")
        other_lot = await cache.match_station("다른 이름", 37.5, 127.0, address="서울 강남구 역삼동 73")

        assert matched.external_id == "L1"
        assert other_lot is None

    @pytest.mark.asyncio
    async def test_address_match_limited_by_distance(self):
        """같은 주소라도 address_match_radius_m 밖이면 매칭 X"""
        provider = FakeProvider(
            {"r": [_addressed("F1", "역삼주유소", 37.52, 127.0, road_address="서울 강남구 강남대로 1")]}
        )
        cache = _make_cache(provider, address_match_radius_m=1000)
        await cache.refresh("key")

        record = await cache.match_station("다른 이름", 37.5, 127.0, road_address="서울 강남구 강남대로 1")

        assert record is None

    @pytest.mark.asyncio
    async def test_batch_match_by_address_from_redis(self, gangnam_provider, redis_cache):
        """다른 인스턴스의 Redis 데이터로 배치 매칭할 때도 주소 우선"""
        await _make_cache(gangnam_provider, redis_cache).refresh("key")
        reader = _make_cache(FakeProvider({}), redis_cache)

        results = await reader.match_by_coordinates(
            [
                StationQuery("이름 모름", 37.49000, 127.03433, road_address="서울 서초구 남부순환로 2621"),
                StationQuery("이름 모름", 37.49000, 127.03433),
            ]
        )

        assert results[0].external_id == "A0000003"
        assert results[1] is None


class TestLiveFetch:
    """캐시가 빈 상태에서 실시간 갱신"""

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_refresh(self, sample_fuel_stations):
        provider = SlowProvider({"r1": sample_fuel_stations, "r2": [], "r3": []})
        cache = _make_cache(provider, allow_live_fetch=True, api_key="key")
        query = [StationQuery("SK에너지 강남셀프주유소", 37.49790, 127.02760)]

        results = await asyncio.gather(*(cache.match_by_coordinates(query) for _ in range(10)))

        assert sorted(provider.calls) == ["r1", "r2", "r3"]
        assert all(r[0].external_id == "A0000001" for r in results)

    @pytest.mark.asyncio
    async def test_mixed_lookups_share_one_refresh(self, sample_fuel_stations):
        provider = SlowProvider({"r1": sample_fuel_stations})
        cache = _make_cache(provider, allow_live_fetch=True, api_key="key")

        await asyncio.gather(
            cache.match_station("GS칼텍스 역삼주유소", 37.50037, 127.03636),
            cache.find_nearby(37.49790, 127.02760, 1.0),
            cache.match_by_coordinates([StationQuery("역삼주유소", 37.5, 127.0)]),
        )

        assert provider.calls == ["r1"]

    @pytest.mark.asyncio
    async def test_empty_result_is_not_retried_immediately(self):
        provider = FakeProvider({"r1": [], "r2": []})
        cache = _make_cache(provider, allow_live_fetch=True, api_key="key", live_fetch_retry_seconds=300)

        assert await cache.match_station("역삼주유소", 37.5, 127.0) is None
        assert await cache.find_nearby(37.5, 127.0, 1.0) == []
        assert await cache.match_by_coordinates([StationQuery("역삼주유소", 37.5, 127.0)]) == [None]

        assert provider.calls == ["r1", "r2"]

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_retried_immediately(self):
        provider = FakeProvider({}, failing=["r1"])
        cache = _make_cache(provider, allow_live_fetch=True, api_key="key")

        await cache.match_station("역삼주유소", 37.5, 127.0)
        await cache.match_station("역삼주유소", 37.5, 127.0)

        assert provider.calls == ["r1"]

    @pytest.mark.asyncio
    async def test_retry_after_window(self, sample_fuel_stations):
        provider = FakeProvider({"r1": []})
        cache = _make_cache(provider, allow_live_fetch=True, api_key="key", live_fetch_retry_seconds=0)

        assert await cache.match_station("SK에너지 강남셀프주유소", 37.49790, 127.02760) is None
        provider.data["r1"] = sample_fuel_stations
        record = await cache.match_station("SK에너지 강남셀프주유소", 37.49790, 127.02760)

        assert record.external_id == "A0000001"
        assert provider.calls == ["r1", "r1"]

    @pytest.mark.asyncio
    async def test_no_live_fetch_without_key(self, gangnam_provider):
        cache = _make_cache(gangnam_provider, allow_live_fetch=True, api_key="")

        assert await cache.match_station("역삼주유소", 37.5, 127.0) is None
        assert gangnam_provider.calls == []


class TestRefresh:
    """전체/배치 갱신 테스트"""

    @pytest.mark.asyncio
    async def test_partial_failure_commits_successful_regions(self, redis_cache):
        provider = FakeProvider(
            {
                "r1": [_station("S1", "가주유소", 37.1, 127.1)],
                "r2": [_station("S2", "나주유소", 37.2, 127.2)],
            },
            failing=["r3"],
        )
        cache = _make_cache(provider, redis_cache, refresh_concurrency=2)

        result = await cache.refresh("key")

        assert result.total_records == 2
        assert result.api_calls == 3
        assert result.errors == 1
        assert result.first_error.startswith("r3")
        assert await redis_cache.get_error_count("fuel_refresh") == 1

    @pytest.mark.asyncio
    async def test_total_failure_keeps_existing_data(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)
        await cache.refresh("key")
        gangnam_provider.failing = {"gangnam"}

        result = await cache.refresh("key")
        status = await cache.get_cache_status()

        assert result.total_records == 0
        assert result.errors == 1
        assert status["station_count"] == 3

    @pytest.mark.asyncio
    async def test_duplicate_ids_across_regions(self, sample_fuel_stations):
        """조회 반경이 겹쳐 같은 주유소가 두 지역에서 나와도 1개"""
        provider = FakeProvider({"a": sample_fuel_stations, "b": sample_fuel_stations[:1]})
        cache = _make_cache(provider)

        result = await cache.refresh("key")

        assert result.total_records == 3

    @pytest.mark.asyncio
    async def test_explicit_region_params(self, gangnam_provider):
        cache = _make_cache(gangnam_provider)

        await cache.refresh("key", region_params=["gangnam"])

        assert gangnam_provider.calls == ["gangnam"]

    @pytest.mark.asyncio
    async def test_refresh_batch_merges_with_existing(self):
        provider = FakeProvider(
            {
                "11": [_station("E1", "서울충전소", 37.5, 127.0)],
                "26": [_station("E2", "부산충전소", 35.1, 129.0)],
                "27": [_station("E3", "대구충전소", 35.8, 128.6)],
            }
        )
        cache = _make_cache(provider, namespace="ev")
        await cache.refresh("key")
        provider.data["26"] = [_station("E4", "해운대충전소", 35.16, 129.16)]

        result = await cache.refresh_batch("key", offset=1, batch_size=1)
        ids = sorted(r.external_id for r in (await cache.store.load())[0].data)

        assert result.regions_refreshed == ["26"]
        assert result.next_offset == 2
        assert result.done is False
        assert ids == ["E1", "E3", "E4"]

    @pytest.mark.asyncio
    async def test_refresh_batch_last_batch_wraps(self):
        provider = FakeProvider({"a": [], "b": [], "c": [_station("C1", "충전소", 37.0, 127.0)]})
        cache = _make_cache(provider, namespace="ev")

        result = await cache.refresh_batch("key", offset=2, batch_size=3)

        assert result.done is True
        assert result.next_offset == 0
        assert result.total_records == 1

    @pytest.mark.asyncio
    async def test_refresh_batch_out_of_range_offset_restarts(self):
        provider = FakeProvider({"a": [], "b": []})
        cache = _make_cache(provider, namespace="ev")

        result = await cache.refresh_batch("key", offset=10, batch_size=1)

        assert provider.calls == ["a"]
        assert result.next_offset == 1

    @pytest.mark.asyncio
    async def test_refresh_next_batch_advances_cursor(self, redis_cache, in_memory_redis):
        provider = FakeProvider({"a": [], "b": [], "c": []})
        cache = _make_cache(provider, redis_cache, namespace="ev")

        await cache.refresh_next_batch("key", batch_size=1)
        await cache.refresh_next_batch("key", batch_size=1)

        assert provider.calls == ["a", "b"]
        assert in_memory_redis.store["ev:refresh_cursor"] == "2"

    @pytest.mark.asyncio
    async def test_live_fetch_when_all_tiers_empty(self, gangnam_provider):
        cache = _make_cache(gangnam_provider, allow_live_fetch=True, api_key="key")

        record = await cache.match_station("SK에너지 강남셀프주유소", 37.49790, 127.02760)

        assert record.external_id == "A0000001"
        assert gangnam_provider.calls == ["gangnam"]


class TestTierLoading:
    @pytest.mark.asyncio
    async def test_initialize_from_snapshot(self, tmp_path, gangnam_provider):
        """재시작 후 메모리/Redis가 비어도 스냅샷에서 복구"""
        path = str(tmp_path / "fuel.json")
        await _make_cache(gangnam_provider, snapshot_path=path).refresh("key")

        restarted = _make_cache(FakeProvider({}), snapshot_path=path)
        await restarted.initialize()
        status = await restarted.get_cache_status()

        assert status["has_cached_data"] is True
        assert status["station_count"] == 3
        assert status["tier"] == "memory"

    @pytest.mark.asyncio
    async def test_status_without_data(self, gangnam_provider):
        status = await _make_cache(gangnam_provider).get_cache_status()

        assert status == {
            "has_cached_data": False,
            "station_count": 0,
            "updated_at": None,
            "age_minutes": None,
        }

    @pytest.mark.asyncio
    async def test_build_grid_from_redis(self, gangnam_provider, redis_cache):
        await _make_cache(gangnam_provider, redis_cache).refresh("key")
        other = _make_cache(FakeProvider({}), redis_cache)

        stats = await other.build_grid_from_redis()

        assert stats["record_count"] == 3
        assert stats["cell_count"] >= 1
        assert await other.store.get_tier("memory").load() is not None

    @pytest.mark.asyncio
    async def test_worker_refresh_visible_after_grid_rebuild(self, redis_cache, sample_fuel_stations):
        """
        워커가 Redis에 새 데이터셋을 써도 서버는 메모리 엔트리를 계속 사용,
        격자 재생성 후에야 새 가격을 봄
        """
        server = _make_cache(FakeProvider({"gangnam": sample_fuel_stations}), redis_cache)
        await server.refresh("key")
        cheaper = replace(sample_fuel_stations[0], attributes={"price": 1500, "prodcd": "B027"})
        await _make_cache(FakeProvider({"gangnam": [cheaper]}), redis_cache).refresh("key")

        before = await server.match_station("SK에너지 강남셀프주유소", 37.49790, 127.02760)
        await server.build_grid_from_redis()
        after = await server.match_station("SK에너지 강남셀프주유소", 37.49790, 127.02760)

        assert before.attributes["price"] == 1650
        assert after.attributes["price"] == 1500

    @pytest.mark.asyncio
    async def test_build_grid_without_redis_data(self, gangnam_provider, redis_cache):
        stats = await _make_cache(gangnam_provider, redis_cache).build_grid_from_redis()

        assert stats == {"cell_count": 0, "record_count": 0}


class TestFactory:
    def test_create_fuel_cache(self, redis_cache, gangnam_provider):
        cache = create_fuel_cache(redis_cache, provider=gangnam_provider, fuel_code="D047")

        assert cache.namespace == "fuel:D047"
        assert cache.normalize is normalize_fuel_name
        assert [t.name for t in cache.store.tiers] == ["memory", "redis", "snapshot"]

    def test_create_fuel_caches_per_fuel_type(self, mocker, redis_cache):
        """유종마다 네임스페이스, 스냅샷 파일 분리"""
        mocker.patch.object(settings, "FUEL_SNAPSHOT_PATH", "/tmp/fuel-cache.json")

        caches = create_fuel_caches(redis_cache)

        assert sorted(caches) == ["diesel", "gasoline", "lpg"]
        assert caches["gasoline"].namespace == "fuel:B027"
        assert caches["diesel"].namespace == "fuel:D047"
        assert caches["lpg"].namespace == "fuel:K015"
        assert caches["diesel"].provider.fuel_code == "D047"
        snapshot_paths = {c.store.tiers[-1].path for c in caches.values()}
        assert snapshot_paths == {
            "/tmp/fuel-cache-B027.json",
            "/tmp/fuel-cache-D047.json",
            "/tmp/fuel-cache-K015.json",
        }

    def test_create_ev_cache_never_live_fetches(self, redis_cache, gangnam_provider):
        cache = create_ev_cache(redis_cache, provider=gangnam_provider)

        assert cache.namespace == "ev"
        assert cache.normalize is normalize_ev_name
        assert cache.allow_live_fetch is False

"""
Pytest 설정 및 공통 Fixture
"""

import os
import pytest
import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

# 외부 API 키/Redis 설정이 테스트에 섞이지 않도록 (모듈 임포트 전에 설정해야 함)
os.environ["TESTING"] = "true"
os.environ["REDIS_HOST"] = ""
os.environ["CRON_SECRET"] = ""

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root))

from app.db.redis_client import RedisCache  # noqa: E402
from app.models.domain import Coordinate, StationRecord  # noqa: E402


class InMemoryRedis:
    """
    redis.asyncio.Redis 대용 테스트 더블 (dict 기반)

    RedisCache가 사용하는 get/set/mget/pipeline/incr/expire/ping만 구현
    TTL은 기록만 하고 만료시키지 않음
    """

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.pipeline_calls = 0

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def mget(self, keys):
        return [self.store.get(k) for k in keys]

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def ping(self):
        return True

    async def aclose(self):
        return None

    def pipeline(self, transaction=True):
        self.pipeline_calls += 1
        return _InMemoryPipeline(self)


class _InMemoryPipeline:
    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    def set(self, key, value, ex=None):
        self.commands.append(("set", key, value, ex))
        return self

    def incr(self, key):
        self.commands.append(("incr", key))
        return self

    def expire(self, key, seconds):
        self.commands.append(("expire", key, seconds))
        return self

    async def execute(self):
        results = []
        for command in self.commands:
            name, args = command[0], command[1:]
            results.append(await getattr(self.redis, name)(*args))
        self.commands = []
        return results


@pytest.fixture
def in_memory_redis():
    return InMemoryRedis()


@pytest.fixture
def redis_cache(in_memory_redis):
    """dict 기반 백엔드를 쓰는 실제 RedisCache"""
    return RedisCache(in_memory_redis)


@pytest.fixture
def disabled_redis_cache():
    """REDIS_HOST 미설정 상태와 동일 (모든 연산 no-op)"""
    return RedisCache(None)


@pytest.fixture
def mock_redis_client():
    """Mock Redis 클라이언트 (redis.asyncio)"""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.mget = AsyncMock(return_value=[])
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    mock.pipeline.return_value = pipe
    return mock


@pytest.fixture
def sample_fuel_stations() -> List[StationRecord]:
    """테스트용 주유소 데이터 (강남 일대)"""
    return [
        StationRecord(
            external_id="A0000001",
            name="SK에너지 강남셀프주유소",
            lat=37.49790,
            lng=127.02760,
            road_address="서울 강남구 강남대로 396",
            region="37.498,127.028",
            attributes={"price": 1650, "prodcd": "B027", "brand": "SKE"},
        ),
        StationRecord(
            external_id="A0000002",
            name="GS칼텍스 역삼주유소",
            lat=37.50037,
            lng=127.03636,
            road_address="서울 강남구 테헤란로 201",
            region="37.498,127.028",
            attributes={"price": 1700, "prodcd": "B027", "brand": "GSC"},
        ),
        StationRecord(
            external_id="A0000003",
            name="현대오일뱅크 양재주유소",
            lat=37.48416,
            lng=127.03433,
            road_address="서울 서초구 남부순환로 2621",
            region="37.484,127.034",
            attributes={"price": 1720, "prodcd": "B027", "brand": "HDO"},
        ),
    ]


@pytest.fixture
def sample_ev_rows() -> List[Dict[str, str]]:
    """테스트용 충전기 응답 행 (충전소 2곳, 충전기 4대)"""
    return [
        {
            "statId": "ME000001",
            "statNm": "강남구청 공영주차장",
            "addr": "서울특별시 강남구 학동로 426",
            "lat": "37.5172",
            "lng": "127.0473",
            "chgerType": "04",
            "output": "100",
            "busiNm": "환경부",
            "useTime": "24시간 이용가능",
            "parkingFree": "Y",
            "zcode": "11",
        },
        {
            "statId": "ME000001",
            "statNm": "강남구청 공영주차장",
            "addr": "서울특별시 강남구 학동로 426",
            "lat": "37.5172",
            "lng": "127.0473",
            "chgerType": "02",
            "output": "7",
            "busiNm": "환경부",
            "useTime": "24시간 이용가능",
            "parkingFree": "Y",
            "zcode": "11",
        },
        {
            "statId": "ME000001",
            "statNm": "강남구청 공영주차장",
            "addr": "서울특별시 강남구 학동로 426",
            "lat": "37.5172",
            "lng": "127.0473",
            "chgerType": "04",
            "output": "200",
            "busiNm": "환경부",
            "useTime": "24시간 이용가능",
            "parkingFree": "Y",
            "zcode": "11",
        },
        {
            "statId": "PI000002",
            "statNm": "역삼동 주민센터",
            "addr": "서울특별시 강남구 역삼로 7길",
            "lat": "37.4953",
            "lng": "127.0331",
            "chgerType": "07",
            "output": "50",
            "busiNm": "차지비",
            "useTime": "09:00~18:00",
            "parkingFree": "N",
            "zcode": "11",
        },
    ]


@pytest.fixture
def meridian_route():
    """경도 127.0 위를 북쪽으로 0.1km 간격 직선 경로 (길이 km => 좌표 생성 함수)"""
    km_per_degree = 6371.0 * 3.141592653589793 / 180

    def _build(length_km: float, step_km: float = 0.1, start_lat: float = 36.0):
        steps = int(round(length_km / step_km))
        return [
            Coordinate(lat=start_lat + (i * step_km) / km_per_degree, lng=127.0)
            for i in range(steps + 1)
        ]

    return _build

# 주유소/충전소 캐시 서비스 팩토리

import logging
import os
from typing import Dict, Optional

from app.algorithms.name_matching import normalize_ev_name, normalize_fuel_name
from app.clients.ev_charger_client import EvChargerClient
from app.clients.opinet_client import OpinetClient
from app.core.config import DEFAULT_FUEL_CODE, FUEL_TYPE_CODES, settings
from app.db.redis_client import RedisCache
from app.services.station_cache import StationDatasetCache

logger = logging.getLogger(__name__)

FUEL_NAMESPACE = "fuel"
EV_NAMESPACE = "ev"


def fuel_snapshot_path(fuel_code: str) -> str:
    """유종별 스냅샷 파일 경로 (/tmp/gilfinder-fuel-cache.json => /tmp/gilfinder-fuel-cache-B027.json)"""
    root, ext = os.path.splitext(settings.FUEL_SNAPSHOT_PATH)
    return f"{root}-{fuel_code}{ext}"


def create_fuel_cache(
    redis_cache: RedisCache,
    provider: Optional[OpinetClient] = None,
    fuel_code: str = DEFAULT_FUEL_CODE,
) -> StationDatasetCache:
    """
    주유소 가격 캐시 (유종 1개)

    - 조회 지점(OPINET_GRID_POINTS) 단위 수집, 반경 7km
    - 매칭 요청 시 캐시가 비어 있으면 OPINET 키가 있을 때만 실시간 갱신
    - Redis 네임스페이스, 스냅샷 파일 모두 유종 코드별로 분리
    """
    provider = provider or OpinetClient(fuel_code=fuel_code)
    cache = StationDatasetCache(
        provider=provider,
        namespace=f"{FUEL_NAMESPACE}:{fuel_code}",
        normalizer=normalize_fuel_name,
        redis_cache=redis_cache,
        snapshot_path=fuel_snapshot_path(fuel_code),
        allow_live_fetch=bool(settings.OPINET_API_KEY),
        api_key=settings.OPINET_API_KEY,
    )
    logger.info(f"✓ 주유소 캐시 생성 (유종 {fuel_code}, 실시간 갱신 {cache.allow_live_fetch})")
    return cache


def create_fuel_caches(redis_cache: RedisCache) -> Dict[str, StationDatasetCache]:
    """유종 이름(gasoline, diesel, lpg) => 주유소 가격 캐시"""
    return {
        fuel_type: create_fuel_cache(redis_cache, fuel_code=code)
        for fuel_type, code in FUEL_TYPE_CODES.items()
    }


def create_ev_cache(
    redis_cache: RedisCache,
    provider: Optional[EvChargerClient] = None,
) -> StationDatasetCache:
    """
    충전소 캐시

    전국 수집이 오래 걸리므로(지역당 최대 30초) 매칭 요청에서 실시간 갱신하지 않음
    => 스케줄러의 배치 갱신으로만 채움
    """
    provider = provider or EvChargerClient()
    cache = StationDatasetCache(
        provider=provider,
        namespace=EV_NAMESPACE,
        normalizer=normalize_ev_name,
        redis_cache=redis_cache,
        snapshot_path=settings.EV_SNAPSHOT_PATH,
        allow_live_fetch=False,
    )
    logger.info("✓ 충전소 캐시 생성")
    return cache

"""
주유소 가격 / 충전소 데이터셋 REST API 엔드포인트

- 상태 조회, 배치 매칭: 누구나
- 갱신, 격자 재생성: CRON_SECRET 인증 (스케줄러 전용)
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.algorithms.name_matching import is_self_service
from app.api.deps import (
    get_dataset_cache,
    get_ev_cache,
    get_fuel_cache,
    to_http_exception,
    verify_cron_secret,
)
from app.core.config import CHARGER_TYPE_MAP, settings
from app.core.exceptions import ConfigurationMissingException, GilfinderException
from app.models.domain import StationQuery, StationRecord
from app.models.requests import BatchRefreshRequest, StationMatchItem, StationMatchRequest
from app.models.responses import (
    BatchRefreshResponse,
    CacheStatusResponse,
    EvMatchResponse,
    FuelMatchResponse,
    GridRebuildResponse,
    RefreshResponse,
)
from app.services.station_cache import StationDatasetCache, distance_m

logger = logging.getLogger(__name__)

fuel_router = APIRouter()
ev_router = APIRouter()
router = APIRouter()


def _queries(request: StationMatchRequest):
    return [
        StationQuery(
            name=s.name, lat=s.lat, lng=s.lng, address=s.address, road_address=s.road_address
        )
        for s in request.stations
    ]


def _require_key(key: str, name: str) -> str:
    if not key:
        raise ConfigurationMissingException(f"{name}가 설정되지 않았습니다")
    return key


def _fuel_result(item: StationMatchItem, record: Optional[StationRecord]):
    if record is None:
        return None
    return {
        "external_id": record.external_id,
        "name": record.name,
        "price": record.attributes.get("price", 0),
        "prodcd": record.attributes.get("prodcd", ""),
        "is_self": is_self_service(item.name, record.name),
        "distance_m": distance_m(record, item.lat, item.lng),
    }


def _ev_result(item: StationMatchItem, record: Optional[StationRecord]):
    if record is None:
        return None
    attrs = record.attributes
    return {
        "external_id": record.external_id,
        "name": record.name,
        "charger_types": [CHARGER_TYPE_MAP.get(c, c) for c in attrs.get("charger_types", [])],
        "max_output": attrs.get("max_output", 0),
        "charger_count": attrs.get("charger_count", 0),
        "operator": attrs.get("operator", ""),
        "use_time": attrs.get("use_time", ""),
        "parking_free": bool(attrs.get("parking_free")),
        "distance_m": distance_m(record, item.lat, item.lng),
    }


# ========== 주유소 ==========


@fuel_router.get("/status", response_model=CacheStatusResponse)
async def fuel_status(cache: StationDatasetCache = Depends(get_fuel_cache)):
    """주유소 가격 캐시 상태 (?fuel_type=gasoline|diesel|lpg, 기본 gasoline)"""
    return await cache.get_cache_status()


@fuel_router.post(
    "/refresh", response_model=RefreshResponse, dependencies=[Depends(verify_cron_secret)]
)
async def refresh_fuel(cache: StationDatasetCache = Depends(get_fuel_cache)):
    """
    전국 주유소 가격 갱신 (OPINET 조회 지점 전체)

    OPINET 가격은 매일 06시 갱신 => 07시 이후 유종별 1회 호출
    - **fuel_type**: gasoline | diesel | lpg (기본 gasoline)
    """
    try:
        api_key = _require_key(settings.OPINET_API_KEY, "OPINET_API_KEY")
        result = await cache.refresh(api_key)
        return asdict(result)
    except GilfinderException as e:
        logger.error(f"주유소 갱신 실패: {e.message}")
        raise to_http_exception(e)


@fuel_router.post("/match", response_model=FuelMatchResponse)
async def match_fuel(
    request: StationMatchRequest, cache: StationDatasetCache = Depends(get_fuel_cache)
):
    """
    카카오 주유소 목록 => OPINET 가격 배치 매칭 (최대 50개)

    prices[i]는 stations[i]에 대응, 매칭 실패는 null
    - **fuel_type**: 가격을 조회할 유종 (기본 gasoline)
    """
    try:
        records = await cache.match_by_coordinates(_queries(request))
        matched = sum(1 for r in records if r is not None)
        logger.info(f"주유소 매칭: {matched}/{len(records)}")
        return {"prices": [_fuel_result(i, r) for i, r in zip(request.stations, records)]}
    except GilfinderException as e:
        logger.error(f"주유소 매칭 실패: {e.message}")
        raise to_http_exception(e)


# ========== 충전소 ==========


@ev_router.get("/status", response_model=CacheStatusResponse)
async def ev_status(cache: StationDatasetCache = Depends(get_ev_cache)):
    """충전소 캐시 상태"""
    return await cache.get_cache_status()


@ev_router.post(
    "/refresh", response_model=RefreshResponse, dependencies=[Depends(verify_cron_secret)]
)
async def refresh_ev(cache: StationDatasetCache = Depends(get_ev_cache)):
    """전국 충전소 전체 갱신 (17개 지역, 오래 걸림 => 운영에서는 /refresh/batch 사용)"""
    try:
        api_key = _require_key(settings.DATA_GO_KR_API_KEY, "DATA_GO_KR_API_KEY")
        result = await cache.refresh(api_key)
        return asdict(result)
    except GilfinderException as e:
        logger.error(f"충전소 갱신 실패: {e.message}")
        raise to_http_exception(e)


@ev_router.post(
    "/refresh/batch",
    response_model=BatchRefreshResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def refresh_ev_batch(
    request: Optional[BatchRefreshRequest] = None,
    cache: StationDatasetCache = Depends(get_ev_cache),
):
    """
    충전소 지역 일부 갱신

    - **offset**: 시작 지역 index (생략 시 Redis 커서)
    - **batch_size**: 이번 호출에서 갱신할 지역 수
    """
    request = request or BatchRefreshRequest()
    try:
        api_key = _require_key(settings.DATA_GO_KR_API_KEY, "DATA_GO_KR_API_KEY")
        if request.offset is None:
            result = await cache.refresh_next_batch(api_key, request.batch_size)
        else:
            result = await cache.refresh_batch(api_key, request.offset, request.batch_size)
        return asdict(result)
    except GilfinderException as e:
        logger.error(f"충전소 배치 갱신 실패: {e.message}")
        raise to_http_exception(e)


@ev_router.post("/match", response_model=EvMatchResponse)
async def match_ev(
    request: StationMatchRequest, cache: StationDatasetCache = Depends(get_ev_cache)
):
    """카카오 충전소 목록 => 환경공단 충전기 정보 배치 매칭 (최대 50개)"""
    try:
        records = await cache.match_by_coordinates(_queries(request))
        return {"stations": [_ev_result(i, r) for i, r in zip(request.stations, records)]}
    except GilfinderException as e:
        logger.error(f"충전소 매칭 실패: {e.message}")
        raise to_http_exception(e)


# ========== 공통 ==========


@router.post(
    "/{dataset}/grid/rebuild",
    response_model=GridRebuildResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def rebuild_grid(dataset: str, cache: StationDatasetCache = Depends(get_dataset_cache)):
    """
    Redis에 저장된 데이터셋으로 격자 인덱스 재생성 (외부 API 호출 없음)

    - dataset=fuel 이면 ?fuel_type=gasoline|diesel|lpg 로 유종 선택 (기본 gasoline)
    """
    try:
        result = await cache.build_grid_from_redis()
        return {"dataset": dataset, **result}
    except GilfinderException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"격자 재생성 오류: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"격자 재생성 중 오류 발생: {str(e)}")

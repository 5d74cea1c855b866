import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.clients.kakao_mobility_client import KakaoMobilityClient
from app.core.config import DEFAULT_FUEL_TYPE, FUEL_TYPE_PATTERN, settings
from app.core.exceptions import (
    ConfigurationMissingException,
    GilfinderException,
    MalformedInputException,
    UpstreamUnavailableException,
)
from app.db.redis_client import RedisCache
from app.services.route_search_service import RouteCandidateSelector
from app.services.station_cache import StationDatasetCache

logger = logging.getLogger(__name__)

# auto_error=False -> 헤더가 없어도 에러를 내지 않고 None을 반환
# => CRON_SECRET 미설정 시 인증 생략을 위해 필수
bearer_scheme = HTTPBearer(auto_error=False)


# lifespan에서 app.state에 등록한 서비스 주입
def get_redis_cache(request: Request) -> RedisCache:
    return request.app.state.redis_cache


def get_fuel_cache(
    request: Request,
    fuel_type: str = Query(DEFAULT_FUEL_TYPE, pattern=FUEL_TYPE_PATTERN),
) -> StationDatasetCache:
    """?fuel_type=gasoline|diesel|lpg => 해당 유종 캐시"""
    return request.app.state.fuel_caches[fuel_type]


def get_ev_cache(request: Request) -> StationDatasetCache:
    return request.app.state.ev_cache


def get_selector(request: Request) -> RouteCandidateSelector:
    return request.app.state.selector


def get_mobility_client(request: Request) -> KakaoMobilityClient:
    return request.app.state.mobility_client


def get_dataset_cache(
    dataset: str,
    request: Request,
    fuel_type: str = Query(DEFAULT_FUEL_TYPE, pattern=FUEL_TYPE_PATTERN),
) -> StationDatasetCache:
    if dataset == "fuel":
        return request.app.state.fuel_caches[fuel_type]
    if dataset == "ev":
        return request.app.state.ev_cache
    raise HTTPException(status_code=404, detail=f"알 수 없는 데이터셋: {dataset}")


# 갱신 엔드포인트 => Authorization: Bearer $CRON_SECRET
async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    if not settings.CRON_SECRET:
        return

    token = credentials.credentials if credentials is not None else ""
    if not secrets.compare_digest(token, settings.CRON_SECRET):
        logger.warning("갱신 요청 인증 실패")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def to_http_exception(e: GilfinderException) -> HTTPException:
    """도메인 예외 => HTTP 상태 코드"""
    if isinstance(e, MalformedInputException):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ConfigurationMissingException):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, UpstreamUnavailableException):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail={"message": e.message, "code": e.code})

"""
주유소/충전소 데이터셋 갱신 작업

각 작업은 자체 이벤트 루프(asyncio.run)에서 서비스를 만들고 정리함
=> API 서버와 같은 Redis/스냅샷 계층에 기록함
   서버 프로세스는 메모리 계층 엔트리가 만료(TTL)될 때까지 이전 데이터셋을 계속 사용
   즉시 반영하려면 POST /v1/{dataset}/grid/rebuild 로 Redis 데이터셋을 메모리에 다시 올림
"""

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict

from app.core.config import DEFAULT_FUEL_TYPE, FUEL_TYPE_CODES, settings
from app.core.exceptions import ConfigurationMissingException, MalformedInputException
from app.db.redis_client import init_redis
from app.services.station_cache import StationDatasetCache
from app.services.station_cache_factory import create_ev_cache, create_fuel_cache
from app.tasks.celery_app import celery

logger = logging.getLogger(__name__)


async def _run_with_cache(
    factory: Callable[..., StationDatasetCache],
    action: Callable[[StationDatasetCache], Awaitable[Any]],
) -> Dict[str, Any]:
    redis_cache = init_redis()
    cache = factory(redis_cache)
    try:
        result = await action(cache)
        return asdict(result)
    finally:
        await cache.provider.aclose()
        await redis_cache.close()


@celery.task(bind=True, max_retries=2)
def refresh_fuel_prices(self, fuel_type: str = DEFAULT_FUEL_TYPE):
    """전국 주유소 가격 전체 갱신 (유종 1개, 유종별 캐시에 기록)"""
    if fuel_type not in FUEL_TYPE_CODES:
        raise MalformedInputException(f"알 수 없는 유종: {fuel_type}")
    if not settings.OPINET_API_KEY:
        raise ConfigurationMissingException("OPINET_API_KEY가 설정되지 않았습니다")

    fuel_code = FUEL_TYPE_CODES[fuel_type]
    try:
        result = asyncio.run(
            _run_with_cache(
                lambda redis_cache: create_fuel_cache(redis_cache, fuel_code=fuel_code),
                lambda cache: cache.refresh(settings.OPINET_API_KEY),
            )
        )
    except Exception as e:
        logger.error(f"주유소 가격 갱신 실패 ({fuel_type}): {e}", exc_info=True)
        # 재시도 (최대 2번, 5분 후)
        raise self.retry(exc=e, countdown=300)

    logger.info(f"주유소 가격 갱신 완료 ({fuel_type}): {result}")
    if result["total_records"] == 0:
        # 전 지역 실패 => 기존 데이터 유지된 상태, 재시도
        raise self.retry(countdown=300)
    return result


@celery.task
def refresh_ev_stations_batch(batch_size: int = settings.EV_REFRESH_REGIONS_PER_RUN):
    """충전소 지역 일부 갱신 (Redis 커서부터 batch_size개 지역)"""
    if not settings.DATA_GO_KR_API_KEY:
        raise ConfigurationMissingException("DATA_GO_KR_API_KEY가 설정되지 않았습니다")

    result = asyncio.run(
        _run_with_cache(
            create_ev_cache,
            lambda cache: cache.refresh_next_batch(settings.DATA_GO_KR_API_KEY, batch_size),
        )
    )
    logger.info(
        f"충전소 배치 갱신: 지역 {result['regions_refreshed']}, "
        f"다음 offset {result['next_offset']}, 완료 {result['done']}"
    )
    return result

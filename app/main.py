"""
Gilfinder Backend - FastAPI Application

경로 주변 장소 검색 (주유소, 충전소, 휴게소, 카페, 음식점)
주유소 가격 / 충전소 정보 캐시 및 매칭
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import HEALTH_ERROR_THRESHOLD, settings
from app.db.redis_client import init_redis
from app.api.v1.router import api_router
from app.models.responses import HealthResponse
from app.clients.kakao_local_client import KakaoLocalClient
from app.clients.kakao_mobility_client import KakaoMobilityClient
from app.services.route_search_service import RouteCandidateSelector
from app.services.station_cache_factory import create_ev_cache, create_fuel_caches

# 로깅 설정
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# health 체크 대상 에러 카운터 (+ 데이터셋별 갱신 실패)
ERROR_CATEGORIES = ("search", "route")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    애플리케이션 생명주기 관리

    서버 시작 시 실행:
    - Redis 캐시 클라이언트 초기화 (미설정이면 no-op)
    - 주유소/충전소 캐시 생성 및 하위 계층 데이터 로드
    - 카카오 API 클라이언트, 경로 주변 검색 서비스 생성

    서버 종료 시 실행:
    - HTTP 클라이언트, Redis 연결 종료
    """
    # ========== Startup ==========
    logger.info("=" * 60)
    logger.info("Gilfinder Backend 시작 중...")
    logger.info("=" * 60)

    try:
        logger.info("1/3 Redis 캐시 초기화 중...")
        redis_cache = init_redis()

        logger.info("2/3 주유소/충전소 캐시 초기화 중...")
        fuel_caches = create_fuel_caches(redis_cache)
        ev_cache = create_ev_cache(redis_cache)
        for fuel_cache in fuel_caches.values():
            await fuel_cache.initialize()
        await ev_cache.initialize()

        logger.info("3/3 카카오 API 클라이언트 초기화 중...")
        local_client = KakaoLocalClient()
        mobility_client = KakaoMobilityClient()
        if not settings.KAKAO_REST_KEY:
            logger.warning("⚠️ KAKAO_REST_KEY 미설정 => 경로 주변 검색 불가 (503)")

        app.state.redis_cache = redis_cache
        app.state.fuel_caches = fuel_caches
        app.state.ev_cache = ev_cache
        app.state.local_client = local_client
        app.state.mobility_client = mobility_client
        app.state.selector = RouteCandidateSelector(
            local_client,
            mobility_client,
            fuel_caches=fuel_caches,
            ev_cache=ev_cache,
            redis_cache=redis_cache,
        )

        logger.info("=" * 60)
        logger.info("Gilfinder Backend 시작 완료!")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"❌ 초기화 실패: {e}", exc_info=True)
        raise

    # application 실행 <- yield로 제어 반환
    yield

    # ========== Shutdown ==========
    logger.info("Gilfinder Backend 종료 중...")

    try:
        station_caches = list(app.state.fuel_caches.values()) + [app.state.ev_cache]
        for cache in station_caches:
            await cache.shutdown()
        clients = [app.state.local_client, app.state.mobility_client]
        for client in clients + [cache.provider for cache in station_caches]:
            await client.aclose()
        await app.state.redis_cache.close()
        logger.info("✓ Gilfinder Backend 종료 완료")

    except Exception as e:
        logger.error(f"❌ 종료 중 오류: {e}", exc_info=True)


# FastAPI 애플리케이션 생성
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
    ## 경로 주변 장소 추천

    ### 주요 기능
    - 🛣️ 경로 구간별 균등 추천 (출발지 근처 쏠림 방지)
    - ⏱️ 우회 시간 계산 및 필터
    - ⛽ 주유소 가격 (OPINET) 매칭
    - 🔌 전기차 충전기 정보 (한국환경공단) 매칭
    """,
    lifespan=lifespan,  # 생명주기 관리자 등록
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API 라우터 등록
app.include_router(api_router, prefix="/v1")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"처리되지 않은 오류: {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "서버 내부 오류가 발생했습니다", "code": "INTERNAL_ERROR"},
    )


# ========== Health Check Endpoints ==========


@app.get("/")
async def root():
    """서비스 기본 정보"""
    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    헬스 체크 엔드포인트

    - Redis 연결 상태
    - 최근 1시간 에러 수 (검색, 경로, 갱신)
    - 주유소(유종별 fuel:gasoline 등)/충전소 캐시 상태
    => 에러 합계가 50을 넘으면 degraded
    """
    state = request.app.state
    redis_ok = await state.redis_cache.ping()

    station_caches = {f"fuel:{t}": c for t, c in state.fuel_caches.items()}
    station_caches["ev"] = state.ev_cache

    errors = {}
    categories = list(ERROR_CATEGORIES) + [
        f"{cache.namespace}_refresh" for cache in station_caches.values()
    ]
    for category in categories:
        errors[category] = await state.redis_cache.get_error_count(category)
    total_errors = sum(errors.values())

    caches = {name: await cache.get_cache_status() for name, cache in station_caches.items()}

    return {
        "status": "degraded" if total_errors > HEALTH_ERROR_THRESHOLD else "healthy",
        "version": settings.VERSION,
        "redis": redis_ok,
        "errors": errors,
        "total_errors": total_errors,
        "caches": caches,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )

import os
from typing import Dict, List, Tuple
from dotenv import load_dotenv

load_dotenv()  # 환경변수 읽어오기


class Settings:
    PROJECT_NAME: str = "Gilfinder Backend"
    VERSION: str = "1.2.0"

    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    PORT: int = int(os.getenv("PORT", 8001))

    # 외부 API 키 => 없으면 해당 기능만 비활성화
    KAKAO_REST_KEY: str = os.getenv("KAKAO_REST_KEY", "")
    OPINET_API_KEY: str = os.getenv("OPINET_API_KEY", "")
    DATA_GO_KR_API_KEY: str = os.getenv("DATA_GO_KR_API_KEY", "")

    # cron 호출 인증 (비어 있으면 인증 생략)
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")

    # REDIS_HOST가 비어 있으면 분산 캐시 계층 없이 동작 (no-op)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", 6379))
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_TIMEOUT_SECONDS: float = float(os.getenv("REDIS_TIMEOUT_SECONDS", 3))
    # pipeline 1회당 SET 개수 => redis 요청 body 크기 제한 대응
    REDIS_PIPELINE_BATCH_SIZE: int = int(os.getenv("REDIS_PIPELINE_BATCH_SIZE", 200))

    # 외부 API 호출 타임아웃
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", 10))
    EV_API_TIMEOUT_SECONDS: float = float(os.getenv("EV_API_TIMEOUT_SECONDS", 30))

    # 주유소/충전소 데이터 캐시
    STATION_CACHE_TTL_SECONDS: int = int(
        os.getenv("STATION_CACHE_TTL_SECONDS", 24 * 60 * 60)
    )  # 24시간
    FUEL_SNAPSHOT_PATH: str = os.getenv(
        "FUEL_SNAPSHOT_PATH", "/tmp/gilfinder-fuel-cache.json"
    )
    EV_SNAPSHOT_PATH: str = os.getenv("EV_SNAPSHOT_PATH", "/tmp/gilfinder-ev-cache.json")

    # 갱신 시 동시 호출 수 및 배치 간 대기 (API 부하 방지)
    REFRESH_CONCURRENCY: int = int(os.getenv("REFRESH_CONCURRENCY", 3))
    REFRESH_BATCH_PAUSE_SECONDS: float = float(
        os.getenv("REFRESH_BATCH_PAUSE_SECONDS", 0.2)
    )
    EV_REFRESH_REGIONS_PER_RUN: int = int(os.getenv("EV_REFRESH_REGIONS_PER_RUN", 3))
    # 캐시가 빈 상태에서 실시간 갱신이 실패/0건이면 이 시간 동안 재시도 X
    LIVE_FETCH_RETRY_SECONDS: float = float(os.getenv("LIVE_FETCH_RETRY_SECONDS", 300))

    # 매칭 파라미터 => 실데이터로 튜닝 필요
    STATION_MATCH_RADIUS_M: float = float(os.getenv("STATION_MATCH_RADIUS_M", 50))
    # 주소 일치 매칭 허용 거리 (좌표 오차 감안, 이름 매칭 반경보다 넓게)
    ADDRESS_MATCH_RADIUS_M: float = float(os.getenv("ADDRESS_MATCH_RADIUS_M", 1000))
    NAME_SIMILARITY_THRESHOLD: float = float(
        os.getenv("NAME_SIMILARITY_THRESHOLD", 0.8)
    )
    # 2자리 => 약 1.1km x 0.9km 셀
    GEO_GRID_PRECISION: int = int(os.getenv("GEO_GRID_PRECISION", 2))

    # 경로 검색 배치 크기
    PLACE_SEARCH_BATCH_SIZE: int = int(os.getenv("PLACE_SEARCH_BATCH_SIZE", 3))
    DETOUR_BATCH_SIZE: int = int(os.getenv("DETOUR_BATCH_SIZE", 5))

    CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
    CELERY_RESULT_BACKEND: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://redis:6379/2"
    )

    # CORS 설정
    ALLOWED_ORIGINS: list[str] = os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")

    @property
    def REDIS_URL(self) -> str:
        if not self.REDIS_HOST:
            return ""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/0"


settings = Settings()  # 모듈화


# 총 경로 길이(km) 구간별 (검색 반경 m, 샘플링 간격 km)
# 짧은 경로 => 촘촘하게, 긴 경로 => 넓고 듬성듬성 (API 호출 수 일정하게 유지)
ROUTE_PARAMS_TABLE: List[Tuple[float, int, float]] = [
    (10, 400, 0.3),
    (30, 500, 0.7),
    (100, 1000, 2.0),
    (300, 2000, 3.0),
    (float("inf"), 3000, 5.0),
]

# 카테고리 => (검색 키워드, 카카오 카테고리 그룹 코드)
CATEGORY_MAP: Dict[str, Dict[str, str]] = {
    "coffee": {"keyword": "", "code": "CE7"},
    "fuel": {"keyword": "", "code": "OL7"},
    "food": {"keyword": "", "code": "FD6"},
    "convenience": {"keyword": "", "code": "CS2"},
    "rest": {"keyword": "고속도로휴게소", "code": ""},
    "ev": {"keyword": "전기차충전소", "code": ""},
    "custom": {"keyword": "", "code": ""},
}

# 세그먼트 균등 선택
NUM_SEGMENTS = 10
PER_SEGMENT_DEFAULT = 3
PER_SEGMENT_DENSE = 5  # 음식점/카페는 후보가 많으므로 더 많이 선택
DENSE_CATEGORIES = ("food", "coffee")

# 휴게소 필터 => "휴게소" 포함 필수, 졸음쉼터/간이휴게소 제외
REST_AREA_REQUIRED = "휴게소"
REST_AREA_EXCLUDED = ("졸음", "간이")

# 우회 시간 추정 상수 (실제 경로 API 실패 시 사용)
DETOUR_ROAD_FACTOR = 1.4  # 직선거리 대비 도로거리
DETOUR_ASSUMED_SPEED_KMH = 40
DETOUR_FIXED_OVERHEAD_MIN = 3  # 고속도로 진출입

# 추천 점수
DEFAULT_RATING = 3.5
DETOUR_DECAY_RATE = 0.05
FUEL_REFERENCE_PRICE = 2000  # 원/L
FUEL_BONUS_DIVISOR = 500

# 유종 코드 (OPINET)
FUEL_TYPE_CODES = {
    "gasoline": "B027",
    "diesel": "D047",
    "lpg": "K015",
}
DEFAULT_FUEL_TYPE = "gasoline"
DEFAULT_FUEL_CODE = FUEL_TYPE_CODES[DEFAULT_FUEL_TYPE]
FUEL_TYPE_PATTERN = "^(gasoline|diesel|lpg)$"

# health 체크에서 degraded로 판단하는 시간당 에러 수
HEALTH_ERROR_THRESHOLD = 50

# 환경공단 충전기 타입 코드
CHARGER_TYPE_MAP: Dict[str, str] = {
    "01": "DC차데모",
    "02": "AC완속",
    "03": "DC차데모+AC3상",
    "04": "DC콤보",
    "05": "DC차데모+DC콤보",
    "06": "DC차데모+AC3상+DC콤보",
    "07": "AC3상",
    "08": "DC콤보+AC3상",
}

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

# service 별 응답 구조 정의


# 경로 주변 장소 한 건
class PlaceResponse(BaseModel):
    id: str = Field(..., description="카카오 장소 ID")
    name: str
    category: str
    category_code: str = ""
    lat: float
    lng: float
    address: str = ""
    road_address: str = ""
    phone: str = ""
    place_url: str = ""
    distance: int = Field(..., description="경로까지 거리 (m)")
    detour_minutes: int = Field(..., description="우회 시간 (분)")
    detour_distance: int = Field(..., description="우회 거리 (m)")
    rating: Optional[float] = None
    review_count: Optional[int] = None
    score: Optional[float] = Field(None, description="추천 점수 (sort=recommend)")
    fuel_price: Optional[int] = Field(None, description="원/L")
    fuel_type: Optional[str] = None
    is_self_service: Optional[bool] = None
    ev_charger_types: Optional[List[str]] = None
    ev_max_output: Optional[int] = Field(None, description="kW")
    ev_operator: Optional[str] = None
    ev_charger_count: Optional[int] = None
    ev_use_time: Optional[str] = None
    ev_parking_free: Optional[bool] = None


class RoutePlacesResponse(BaseModel):
    category: str
    route_distance_km: float = Field(..., description="경로 총 길이 (km)")
    count: int
    places: List[PlaceResponse] = Field(default_factory=list)


# 데이터셋 캐시 상태
class CacheStatusResponse(BaseModel):
    has_cached_data: bool
    station_count: int
    updated_at: Optional[str] = Field(None, description="ISO 8601 (UTC)")
    age_minutes: Optional[int] = None
    tier: Optional[str] = Field(None, description="응답한 캐시 계층")


class RefreshResponse(BaseModel):
    total_records: int
    api_calls: int
    errors: int
    first_error: Optional[str] = None


class BatchRefreshResponse(RefreshResponse):
    regions_refreshed: List[str] = Field(default_factory=list)
    next_offset: int = 0
    done: bool = False


class FuelMatchResult(BaseModel):
    external_id: str = Field(..., description="OPINET UNI_ID")
    name: str
    price: int
    prodcd: str
    is_self: bool
    distance_m: int


# prices[i] => 요청 stations[i], 매칭 실패는 null
class FuelMatchResponse(BaseModel):
    prices: List[Optional[FuelMatchResult]]


class EvMatchResult(BaseModel):
    external_id: str = Field(..., description="환경공단 statId")
    name: str
    charger_types: List[str] = Field(default_factory=list)
    max_output: int = 0
    charger_count: int = 0
    operator: str = ""
    use_time: str = ""
    parking_free: bool = False
    distance_m: int


class EvMatchResponse(BaseModel):
    stations: List[Optional[EvMatchResult]]


class GridRebuildResponse(BaseModel):
    dataset: str
    cell_count: int
    record_count: int


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy / degraded")
    version: str
    redis: bool
    errors: Dict[str, int] = Field(default_factory=dict, description="최근 1시간 에러 수")
    total_errors: int = 0
    caches: Dict[str, CacheStatusResponse] = Field(default_factory=dict)


# 에러 응답
class ErrorResponse(BaseModel):
    error: str = Field(..., description="에러 메시지")
    code: Optional[str] = Field(None, description="에러 코드")

from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.config import DEFAULT_FUEL_TYPE, FUEL_TYPE_PATTERN, settings

# service별 requests 구조 정의

MAX_MATCH_STATIONS = 50


# 서비스 지역 좌표 (범위 밖은 400)
class CoordinateModel(BaseModel):
    lat: float = Field(..., ge=33, le=39, description="위도")
    lng: float = Field(..., ge=124, le=132, description="경도")


# 경로 주변 장소 검색
# 경로는 polyline / vertexes / (origin, destination) 중 하나로 전달
class RoutePlacesRequest(BaseModel):
    category: str = Field(..., description="coffee/fuel/food/convenience/rest/ev/custom")
    custom_keyword: Optional[str] = Field(
        default=None, max_length=50, description="category=custom 일 때 검색어"
    )
    polyline: Optional[List[CoordinateModel]] = Field(default=None, description="경로 좌표")
    vertexes: Optional[List[float]] = Field(
        default=None, description="카카오 모빌리티 vertexes [lng, lat, ...]"
    )
    origin: Optional[CoordinateModel] = Field(default=None, description="출발지")
    destination: Optional[CoordinateModel] = Field(default=None, description="도착지")
    max_detour_minutes: int = Field(default=5, ge=0, le=60, description="최대 우회 시간 (분)")
    original_duration: Optional[int] = Field(
        default=None, ge=0, description="원래 경로 소요시간 (초)"
    )
    original_distance: Optional[int] = Field(
        default=None, ge=0, description="원래 경로 거리 (m)"
    )
    sort: str = Field(default="default", pattern="^(default|recommend)$")
    fuel_type: str = Field(
        default=DEFAULT_FUEL_TYPE,
        pattern=FUEL_TYPE_PATTERN,
        description="category=fuel 일 때 가격 유종 (gasoline/diesel/lpg)",
    )


# 주유소/충전소 배치 매칭 요청 한 건 (카카오 장소 정보)
class StationMatchItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    lat: float = Field(..., ge=33, le=39)
    lng: float = Field(..., ge=124, le=132)
    address: str = Field(default="", max_length=200)
    road_address: str = Field(default="", max_length=200)


class StationMatchRequest(BaseModel):
    stations: List[StationMatchItem] = Field(
        ..., min_length=1, max_length=MAX_MATCH_STATIONS, description="최대 50개"
    )


# 지역 일부 갱신 => offset 생략 시 Redis에 저장된 커서 사용
class BatchRefreshRequest(BaseModel):
    offset: Optional[int] = Field(default=None, ge=0)
    batch_size: int = Field(default=settings.EV_REFRESH_REGIONS_PER_RUN, ge=1, le=17)

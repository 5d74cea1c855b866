import time
from typing import Any, Dict, Generic, List, Optional, TypeVar
from dataclasses import dataclass, field, asdict

# domain 정의

T = TypeVar("T")


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass
class Place:
    """경로 주변 후보 장소 (카카오 장소 ID 기준), 요청 단위로 생성 후 폐기"""

    id: str  # 카카오 장소 ID => 주유소/충전소 ID와 다른 ID 체계
    name: str
    category: str
    lat: float
    lng: float
    category_code: str = ""
    address: str = ""
    road_address: str = ""
    phone: str = ""
    place_url: str = ""
    distance: int = 0  # 경로까지 거리 (m)
    detour_minutes: int = 0  # 0 => 아직 계산 전
    detour_distance: int = 0  # m
    rating: Optional[float] = None
    review_count: Optional[int] = None
    score: Optional[float] = None
    # 주유소
    fuel_price: Optional[int] = None
    fuel_type: Optional[str] = None
    is_self_service: Optional[bool] = None
    # 전기차 충전소
    ev_charger_types: Optional[List[str]] = None
    ev_max_output: Optional[int] = None
    ev_operator: Optional[str] = None
    ev_charger_count: Optional[int] = None
    ev_use_time: Optional[str] = None
    ev_parking_free: Optional[bool] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StationRecord:
    """주유소/충전소 데이터 (제공기관 ID 기준), 갱신 시 전체 교체"""

    external_id: str  # OPINET UNI_ID / 환경공단 statId
    name: str
    lat: float
    lng: float
    address: str = ""
    road_address: str = ""
    region: str = ""  # 수집 단위 (조회 지점 or 지역코드)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StationRecord":
        return cls(
            external_id=str(data["external_id"]),
            name=data.get("name", ""),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            address=data.get("address", ""),
            road_address=data.get("road_address", ""),
            region=data.get("region", ""),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class CacheEntry(Generic[T]):
    """TTL이 지난 엔트리는 없는 것과 동일하게 취급"""

    data: T
    fetched_at: float  # unix timestamp (초)
    ttl: float  # 초

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.fetched_at < self.ttl

    def age_minutes(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return int(round((now - self.fetched_at) / 60))


@dataclass
class RouteSummary:
    """경로 API 응답 요약 => distance(m), duration(초)"""

    distance: int
    duration: int
    polyline: List[Coordinate] = field(default_factory=list)


@dataclass
class StationQuery:
    """배치 매칭 요청 한 건 (카카오 장소 정보)"""

    name: str
    lat: float
    lng: float
    address: str = ""
    road_address: str = ""


@dataclass
class RefreshResult:
    total_records: int
    api_calls: int
    errors: int
    first_error: Optional[str] = None


@dataclass
class BatchRefreshResult(RefreshResult):
    regions_refreshed: List[str] = field(default_factory=list)
    next_offset: int = 0
    done: bool = False

"""
pydantic models for 요청, 응답 / dataclass 도메인 객체
"""


from app.models.requests import (
    CoordinateModel,
    RoutePlacesRequest,
    StationMatchItem,
    StationMatchRequest,
    BatchRefreshRequest,
)
from app.models.responses import (
    PlaceResponse,
    RoutePlacesResponse,
    CacheStatusResponse,
    RefreshResponse,
    BatchRefreshResponse,
    FuelMatchResponse,
    EvMatchResponse,
    GridRebuildResponse,
    HealthResponse,
    ErrorResponse,
)
from app.models.domain import (
    Coordinate,
    Place,
    StationRecord,
    CacheEntry,
    RouteSummary,
    StationQuery,
)

__all__ = [
    "CoordinateModel",
    "RoutePlacesRequest",
    "StationMatchItem",
    "StationMatchRequest",
    "BatchRefreshRequest",
    "PlaceResponse",
    "RoutePlacesResponse",
    "CacheStatusResponse",
    "RefreshResponse",
    "BatchRefreshResponse",
    "FuelMatchResponse",
    "EvMatchResponse",
    "GridRebuildResponse",
    "HealthResponse",
    "ErrorResponse",
    "Coordinate",
    "Place",
    "StationRecord",
    "CacheEntry",
    "RouteSummary",
    "StationQuery",
]

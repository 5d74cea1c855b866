"""
OPINET(한국석유공사) 반경 내 주유소 가격 조회

- aroundAll: 조회 지점 KATEC 좌표 기준 반경 내 주유소 + 판매가
- 응답 좌표(GIS_X_COOR, GIS_Y_COOR)도 KATEC => WGS84로 변환하여 저장
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.algorithms.katec import katec_to_wgs84, wgs84_to_katec
from app.clients.base import BaseApiClient, StationProvider
from app.core.config import DEFAULT_FUEL_CODE, settings
from app.core.exceptions import UpstreamUnavailableException
from app.core.regions import OPINET_GRID_POINTS, OPINET_SEARCH_RADIUS_M
from app.models.domain import StationRecord

logger = logging.getLogger(__name__)

OPINET_AROUND_URL = "https://www.opinet.co.kr/api/aroundAll.do"

GridPoint = Tuple[str, float, float]  # (이름, 위도, 경도)


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class OpinetClient(BaseApiClient, StationProvider):
    source = "opinet"
    name = "fuel"

    def __init__(
        self,
        api_key: str = settings.OPINET_API_KEY,
        fuel_code: str = DEFAULT_FUEL_CODE,
        radius_m: int = OPINET_SEARCH_RADIUS_M,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        super().__init__(api_key, http_client, timeout)
        self.fuel_code = fuel_code
        self.radius_m = radius_m

    def default_regions(self) -> List[GridPoint]:
        return list(OPINET_GRID_POINTS)

    def region_id(self, region: GridPoint) -> str:
        # 지점 이름이 중복될 수 있어 좌표로 식별
        _, lat, lng = region
        return f"{lat:.3f},{lng:.3f}"

    async def fetch_region(self, api_key: str, region: GridPoint) -> List[StationRecord]:
        key = self._require_key(api_key)
        name, lat, lng = region
        x, y = wgs84_to_katec(lng, lat)

        data = await self._get_json(
            OPINET_AROUND_URL,
            params={
                "code": key,
                "x": str(round(x)),
                "y": str(round(y)),
                "radius": str(self.radius_m),
                "prodcd": self.fuel_code,
                "sort": "2",  # 거리순
                "out": "json",
            },
        )

        result = data.get("RESULT") if isinstance(data, dict) else None
        if result is None:
            raise UpstreamUnavailableException(f"OPINET 응답 형식 오류: {name}", source=self.source)

        region_id = self.region_id(region)
        records = []
        for oil in result.get("OIL") or []:
            record = self._parse_oil(oil, region_id)
            if record is not None:
                records.append(record)

        logger.debug(f"OPINET {name}({region_id}): {len(records)}개 주유소")
        return records

    def _parse_oil(self, oil: Dict[str, Any], region_id: str) -> Optional[StationRecord]:
        uni_id = oil.get("UNI_ID")
        price = _to_int(oil.get("PRICE"))
        # 가격 없는 주유소는 매칭해도 쓸 데가 없음
        if not uni_id or price <= 0:
            return None

        gis_x = _to_float(oil.get("GIS_X_COOR"))
        gis_y = _to_float(oil.get("GIS_Y_COOR"))
        # 좌표 없는 주유소는 위치를 알 수 없으므로 버림 (조회 지점과 최대 7km 차이)
        if not gis_x or not gis_y:
            logger.debug(f"OPINET 좌표 없음 => 제외: {uni_id}")
            return None
        lng, lat = katec_to_wgs84(gis_x, gis_y)

        return StationRecord(
            external_id=str(uni_id),
            name=oil.get("OS_NM", ""),
            lat=lat,
            lng=lng,
            address=oil.get("VAN_ADR") or "",
            road_address=oil.get("NEW_ADR") or "",
            region=region_id,
            attributes={
                "price": price,
                "prodcd": oil.get("PRODCD") or self.fuel_code,
                "brand": oil.get("POLL_DIV_CD") or "",
            },
        )

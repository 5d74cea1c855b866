import logging
from typing import Any, Dict, List, Optional

import httpx

from app.algorithms.geometry import parse_vertexes
from app.clients.base import BaseApiClient
from app.core.config import settings
from app.core.exceptions import MalformedInputException, UpstreamUnavailableException
from app.models.domain import Coordinate, RouteSummary

logger = logging.getLogger(__name__)

KAKAO_NAVI_BASE = "https://apis-navi.kakaomobility.com/v1"
MAX_WAYPOINTS = 5

# 서비스 지역 (한반도 남쪽) 좌표 범위
LNG_RANGE = (124.0, 132.0)
LAT_RANGE = (33.0, 39.0)


def is_valid_point(point: Coordinate) -> bool:
    return (
        LNG_RANGE[0] <= point.lng <= LNG_RANGE[1]
        and LAT_RANGE[0] <= point.lat <= LAT_RANGE[1]
    )


class KakaoMobilityClient(BaseApiClient):
    """카카오 모빌리티 길찾기 (자동차, 시간 우선)"""

    source = "kakao_mobility"

    def __init__(
        self,
        api_key: str = settings.KAKAO_REST_KEY,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        super().__init__(api_key, http_client, timeout)

    async def get_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Optional[List[Coordinate]] = None,
    ) -> RouteSummary:
        """
        경로 조회 => 거리(m), 소요시간(초), 폴리라인

        경유지가 없으면 directions, 있으면 waypoints/directions (최대 5개)
        """
        waypoints = waypoints or []
        if len(waypoints) > MAX_WAYPOINTS:
            raise MalformedInputException(f"경유지는 최대 {MAX_WAYPOINTS}개까지 가능합니다")
        for point in [origin, destination, *waypoints]:
            if not is_valid_point(point):
                raise MalformedInputException(f"유효하지 않은 좌표입니다: {point.lat}, {point.lng}")

        api_key = self._require_key()
        headers = {"Authorization": f"KakaoAK {api_key}"}

        if not waypoints:
            response = await self._request(
                "GET",
                f"{KAKAO_NAVI_BASE}/directions",
                params={
                    "origin": f"{origin.lng},{origin.lat}",
                    "destination": f"{destination.lng},{destination.lat}",
                    "priority": "TIME",
                },
                headers=headers,
            )
        else:
            body = {
                "origin": {"x": origin.lng, "y": origin.lat},
                "destination": {"x": destination.lng, "y": destination.lat},
                "waypoints": [
                    {"name": f"경유지{i + 1}", "x": wp.lng, "y": wp.lat}
                    for i, wp in enumerate(waypoints)
                ],
                "priority": "TIME",
            }
            response = await self._request(
                "POST",
                f"{KAKAO_NAVI_BASE}/waypoints/directions",
                json=body,
                headers=headers,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailableException("경로 응답 파싱 실패", source=self.source) from e
        return self.parse_route(data)

    def parse_route(self, data: Dict[str, Any]) -> RouteSummary:
        """첫 번째 경로의 요약 + sections => roads => vertexes 폴리라인"""
        routes = data.get("routes") or []
        if not routes:
            raise UpstreamUnavailableException("경로 응답이 비어 있습니다", source=self.source)

        route = routes[0]
        if route.get("result_code", 0) != 0:
            raise UpstreamUnavailableException(
                f"경로를 찾을 수 없습니다: {route.get('result_msg', '')}", source=self.source
            )

        summary = route.get("summary") or {}
        polyline: List[Coordinate] = []
        for section in route.get("sections") or []:
            for road in section.get("roads") or []:
                polyline.extend(parse_vertexes(road.get("vertexes") or []))

        return RouteSummary(
            distance=int(summary.get("distance", 0)),
            duration=int(summary.get("duration", 0)),
            polyline=polyline,
        )

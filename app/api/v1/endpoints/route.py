"""
경로 주변 장소 검색 엔드포인트
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.algorithms.geometry import parse_vertexes, total_distance
from app.api.deps import get_mobility_client, get_selector, to_http_exception
from app.clients.kakao_mobility_client import KakaoMobilityClient, is_valid_point
from app.core.exceptions import GilfinderException, MalformedInputException
from app.models.domain import Coordinate
from app.models.requests import RoutePlacesRequest
from app.models.responses import RoutePlacesResponse
from app.services.recommendation_service import sort_by_recommendation
from app.services.route_search_service import RouteCandidateSelector

router = APIRouter()
logger = logging.getLogger(__name__)


def _polyline_from_vertexes(vertexes: List[float]) -> List[Coordinate]:
    if len(vertexes) % 2 != 0:
        raise MalformedInputException("vertexes 길이가 짝수가 아닙니다")
    polyline = parse_vertexes(vertexes)
    if any(not is_valid_point(p) for p in polyline):
        raise MalformedInputException("유효하지 않은 경로 좌표가 포함되어 있습니다")
    return polyline


@router.post("/places", response_model=RoutePlacesResponse)
async def search_route_places(
    request: RoutePlacesRequest,
    selector: RouteCandidateSelector = Depends(get_selector),
    mobility_client: KakaoMobilityClient = Depends(get_mobility_client),
):
    """
    경로 주변 장소 검색

    - **category**: coffee / fuel / food / convenience / rest / ev / custom
    - **polyline** 또는 **vertexes** 또는 **origin + destination** 중 하나
    - **max_detour_minutes**: 최대 우회 시간 (분)
    - **sort**: default (주유소 가격순 / 우회 시간순), recommend (추천 점수순)

    Example:
        POST /v1/route/places
        {
            "category": "fuel",
            "origin": {"lat": 37.5665, "lng": 126.978},
            "destination": {"lat": 37.2636, "lng": 127.0286},
            "max_detour_minutes": 10
        }
    """
    try:
        original_duration = request.original_duration
        original_distance = request.original_distance

        if request.polyline:
            polyline = [Coordinate(p.lat, p.lng) for p in request.polyline]
        elif request.vertexes:
            polyline = _polyline_from_vertexes(request.vertexes)
        elif request.origin and request.destination:
            route = await mobility_client.get_route(
                Coordinate(request.origin.lat, request.origin.lng),
                Coordinate(request.destination.lat, request.destination.lng),
            )
            polyline = route.polyline
            if original_duration is None:
                original_duration = route.duration
            if original_distance is None:
                original_distance = route.distance
        else:
            raise MalformedInputException("경로(polyline/vertexes) 또는 출발지/도착지가 필요합니다")

        logger.info(f"경로 주변 검색 요청: category={request.category}, 좌표 {len(polyline)}개")

        places = await selector.search_along_route(
            polyline,
            request.category,
            custom_keyword=request.custom_keyword,
            max_detour_minutes=request.max_detour_minutes,
            original_duration=original_duration,
            original_distance=original_distance,
            fuel_type=request.fuel_type,
        )
        if request.sort == "recommend":
            places = sort_by_recommendation(places)

        return {
            "category": request.category,
            "route_distance_km": round(total_distance(polyline), 2),
            "count": len(places),
            "places": [p.to_dict() for p in places],
        }

    except GilfinderException as e:
        logger.error(f"경로 주변 검색 실패: {e.message}")
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"예상치 못한 오류: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="경로 주변 검색 중 오류 발생")

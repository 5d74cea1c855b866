"""
경로 주변 장소 검색

1. 경로 길이에 따라 검색 반경/샘플링 간격 결정
2. 샘플 지점마다 카카오 장소 검색 (3개씩 동시), 장소 ID로 중복 제거
3. 카테고리 필터 (휴게소)
4. 구간 균등 선택 => 경로를 10구간으로 나눠 구간마다 최대 per_segment개
   (출발지 근처에 후보가 몰려도 전 구간에서 고르게 추천)
5. 우회 시간 계산 (경유 경로 API, 실패 시 거리 기반 추정)
6. 주유소 가격 / 충전기 정보 보강 후 최대 우회 시간으로 필터
7. 정렬 (주유소: 가격순, 그 외: 우회 시간순)

샘플 지점 하나, 후보 하나의 실패는 로그만 남기고 건너뜀
"""

import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from app.algorithms.geometry import (
    cumulative_distances,
    nearest_vertex,
    resample_polyline,
    total_distance,
)
from app.algorithms.name_matching import is_self_service
from app.clients.kakao_local_client import KakaoLocalClient
from app.clients.kakao_mobility_client import KakaoMobilityClient
from app.core.config import (
    CATEGORY_MAP,
    CHARGER_TYPE_MAP,
    DEFAULT_FUEL_TYPE,
    DENSE_CATEGORIES,
    DETOUR_ASSUMED_SPEED_KMH,
    DETOUR_FIXED_OVERHEAD_MIN,
    DETOUR_ROAD_FACTOR,
    NUM_SEGMENTS,
    PER_SEGMENT_DEFAULT,
    PER_SEGMENT_DENSE,
    REST_AREA_EXCLUDED,
    REST_AREA_REQUIRED,
    ROUTE_PARAMS_TABLE,
    settings,
)
from app.core.exceptions import (
    ConfigurationMissingException,
    GilfinderException,
    MalformedInputException,
)
from app.db.redis_client import RedisCache
from app.models.domain import Coordinate, Place, StationQuery
from app.services.station_cache import StationDatasetCache

logger = logging.getLogger(__name__)


def get_route_params(
    total_km: float, table: Sequence[Tuple[float, int, float]] = ROUTE_PARAMS_TABLE
) -> Tuple[int, float]:
    """경로 길이(km) => (검색 반경 m, 샘플링 간격 km)"""
    for upper_km, radius_m, interval_km in table:
        if total_km < upper_km:
            return radius_m, interval_km
    _, radius_m, interval_km = table[-1]
    return radius_m, interval_km


def per_segment_for(category: str) -> int:
    return PER_SEGMENT_DENSE if category in DENSE_CATEGORIES else PER_SEGMENT_DEFAULT


def is_rest_area(name: str) -> bool:
    """'휴게소' 포함, 졸음쉼터/간이휴게소 제외"""
    return REST_AREA_REQUIRED in name and not any(ex in name for ex in REST_AREA_EXCLUDED)


def estimate_detour(
    distance_m: float,
    road_factor: float = DETOUR_ROAD_FACTOR,
    speed_kmh: float = DETOUR_ASSUMED_SPEED_KMH,
    overhead_min: float = DETOUR_FIXED_OVERHEAD_MIN,
) -> Tuple[int, int]:
    """
    경로까지 직선거리 => (우회 시간 분, 우회 거리 m) 추정

    왕복 도로거리를 평균 속도로 주행 + 진출입 고정 시간, 최소 1분
    반올림은 0.5 올림
    """
    driving_min = (distance_m * road_factor / 1000) / speed_kmh * 60 * 2
    minutes = max(1, int(math.floor(driving_min + overhead_min + 0.5)))
    return minutes, int(round(distance_m * road_factor * 2))


def select_by_segments(
    places: List[Place],
    polyline: Sequence[Coordinate],
    per_segment: int,
    num_segments: int = NUM_SEGMENTS,
) -> List[Place]:
    """
    경로를 누적 거리 기준 num_segments개 구간으로 나누고
    구간마다 경로에서 가까운 순으로 최대 per_segment개 선택

    구간 판정은 가장 가까운 꼭짓점의 누적 거리 기준
    빈 구간의 몫을 다른 구간에 넘겨주지 않음 => 총 개수 <= num_segments * per_segment
    """
    if not places:
        return []

    cumulative = cumulative_distances(polyline)
    segment_km = cumulative[-1] / num_segments

    segments: List[List[Place]] = [[] for _ in range(num_segments)]
    for place in places:
        idx, _ = nearest_vertex(polyline, place.coordinate)
        if segment_km > 0:
            seg = min(int(cumulative[idx] / segment_km), num_segments - 1)
        else:
            seg = 0
        segments[seg].append(place)

    selected: List[Place] = []
    for segment in segments:
        segment.sort(key=lambda p: p.distance)
        selected.extend(segment[:per_segment])
    return selected


def sort_candidates(places: List[Place], category: str) -> List[Place]:
    """주유소: 가격 오름차순 (가격 없는 곳은 뒤로), 동가는 우회 시간순 / 그 외: 우회 시간순"""
    if category == "fuel":
        return sorted(
            places,
            key=lambda p: (p.fuel_price is None, p.fuel_price or 0, p.detour_minutes),
        )
    return sorted(places, key=lambda p: p.detour_minutes)


class RouteCandidateSelector:
    def __init__(
        self,
        local_client: KakaoLocalClient,
        mobility_client: Optional[KakaoMobilityClient] = None,
        fuel_caches: Optional[Dict[str, StationDatasetCache]] = None,
        ev_cache: Optional[StationDatasetCache] = None,
        redis_cache: Optional[RedisCache] = None,
        search_batch_size: int = settings.PLACE_SEARCH_BATCH_SIZE,
        detour_batch_size: int = settings.DETOUR_BATCH_SIZE,
        num_segments: int = NUM_SEGMENTS,
        road_factor: float = DETOUR_ROAD_FACTOR,
        speed_kmh: float = DETOUR_ASSUMED_SPEED_KMH,
        overhead_min: float = DETOUR_FIXED_OVERHEAD_MIN,
    ):
        self.local_client = local_client
        self.mobility_client = mobility_client
        # 유종 이름(gasoline, diesel, lpg) => 가격 캐시
        self.fuel_caches = fuel_caches or {}
        self.ev_cache = ev_cache
        self.redis_cache = redis_cache or RedisCache(None)
        self.search_batch_size = max(1, search_batch_size)
        self.detour_batch_size = max(1, detour_batch_size)
        self.num_segments = num_segments
        self.road_factor = road_factor
        self.speed_kmh = speed_kmh
        self.overhead_min = overhead_min

    async def search_along_route(
        self,
        polyline: Sequence[Coordinate],
        category: str,
        custom_keyword: Optional[str] = None,
        max_detour_minutes: int = 5,
        original_duration: Optional[int] = None,
        original_distance: Optional[int] = None,
        fuel_type: str = DEFAULT_FUEL_TYPE,
    ) -> List[Place]:
        """
        경로 주변 후보 장소 검색

        Args:
            polyline: 경로 좌표 (2개 이상)
            category: CATEGORY_MAP 키
            custom_keyword: category == "custom" 일 때 검색어
            max_detour_minutes: 이보다 우회 시간이 긴 후보는 제외
            original_duration: 원래 경로 소요시간 (초), 있으면 경유 경로 API로 우회 계산
            original_distance: 원래 경로 거리 (m)
            fuel_type: category == "fuel" 일 때 가격을 붙일 유종

        Raises:
            MalformedInputException: 경로 좌표 부족, 알 수 없는 카테고리
            ConfigurationMissingException: 카카오 API 키 없음
        """
        if len(polyline) < 2:
            raise MalformedInputException("경로 좌표가 2개 이상 필요합니다")

        keyword, category_code = self._resolve_category(category, custom_keyword)

        total_km = total_distance(polyline)
        radius_m, interval_km = get_route_params(total_km)
        samples = resample_polyline(polyline, interval_km)
        logger.info(
            f"경로 주변 검색: {category}, 총 {total_km:.1f}km, "
            f"반경 {radius_m}m, 간격 {interval_km}km, 샘플 {len(samples)}개"
        )

        places = await self._search_samples(samples, keyword, category_code, radius_m)
        if category == "rest":
            places = [p for p in places if is_rest_area(p.name)]

        # 검색 중심점 거리 => 경로까지 거리로 교체
        for place in places:
            _, distance_km = nearest_vertex(polyline, place.coordinate)
            place.distance = int(round(distance_km * 1000))

        selected = select_by_segments(
            places, polyline, per_segment_for(category), self.num_segments
        )

        await self._calculate_detours(selected, polyline, original_duration, original_distance)

        if category == "fuel":
            await self._enrich_fuel(selected, fuel_type)
        elif category == "ev":
            await self._enrich_ev(selected)

        filtered = [p for p in selected if p.detour_minutes <= max_detour_minutes]
        logger.info(
            f"후보 {len(places)}개 => 구간 선택 {len(selected)}개 => 우회 {max_detour_minutes}분 이내 {len(filtered)}개"
        )
        return sort_candidates(filtered, category)

    @staticmethod
    def _resolve_category(category: str, custom_keyword: Optional[str]) -> Tuple[str, str]:
        if category not in CATEGORY_MAP:
            raise MalformedInputException(f"지원하지 않는 카테고리입니다: {category}")

        config = CATEGORY_MAP[category]
        if category == "custom":
            keyword = (custom_keyword or "").strip()
            if not keyword:
                raise MalformedInputException("검색어를 입력해주세요")
            return keyword, ""
        return config["keyword"], config["code"]

    async def _search_samples(
        self, samples: List[Coordinate], keyword: str, category_code: str, radius_m: int
    ) -> List[Place]:
        """샘플 지점별 장소 검색, batch 단위로 동시 호출 후 ID 기준 중복 제거"""
        unique: Dict[str, Place] = {}
        failures = 0

        for start in range(0, len(samples), self.search_batch_size):
            batch = samples[start : start + self.search_batch_size]
            results = await asyncio.gather(
                *(
                    self.local_client.search_places(
                        keyword, category_code, point.lat, point.lng, radius_m
                    )
                    for point in batch
                ),
                return_exceptions=True,
            )

            for point, result in zip(batch, results):
                if isinstance(result, ConfigurationMissingException):
                    raise result
                if isinstance(result, BaseException):
                    failures += 1
                    logger.warning(
                        f"장소 검색 실패 ({point.lat:.5f}, {point.lng:.5f}): {result}"
                    )
                    await self.redis_cache.increment_error_count("search")
                    continue
                for place in result:
                    unique.setdefault(place.id, place)

        if failures:
            logger.warning(f"장소 검색 실패 {failures}/{len(samples)}개 지점 => 일부 결과만 사용")
        return list(unique.values())

    def _estimate(self, place: Place, polyline: Sequence[Coordinate]) -> None:
        _, distance_km = nearest_vertex(polyline, place.coordinate)
        place.detour_minutes, place.detour_distance = estimate_detour(
            distance_km * 1000, self.road_factor, self.speed_kmh, self.overhead_min
        )

    async def _calculate_detours(
        self,
        places: List[Place],
        polyline: Sequence[Coordinate],
        original_duration: Optional[int],
        original_distance: Optional[int],
    ) -> None:
        """
        원래 소요시간이 있으면 경유 경로 API로 실제 우회 시간 계산 (5개씩 동시)
        없거나 개별 호출이 실패하면 거리 기반 추정
        """
        if original_duration is None or self.mobility_client is None:
            for place in places:
                self._estimate(place, polyline)
            return

        origin, destination = polyline[0], polyline[-1]
        for start in range(0, len(places), self.detour_batch_size):
            batch = places[start : start + self.detour_batch_size]
            results = await asyncio.gather(
                *(
                    self.mobility_client.get_route(origin, destination, [place.coordinate])
                    for place in batch
                ),
                return_exceptions=True,
            )

            for place, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning(f"경유 경로 계산 실패 => 추정치 사용: {place.name}, {result}")
                    await self.redis_cache.increment_error_count("route")
                    self._estimate(place, polyline)
                    continue

                place.detour_minutes = max(0, round((result.duration - original_duration) / 60))
                if original_distance is not None:
                    place.detour_distance = max(0, result.distance - original_distance)
                else:
                    _, distance_km = nearest_vertex(polyline, place.coordinate)
                    place.detour_distance = int(round(distance_km * 1000 * self.road_factor * 2))

    @staticmethod
    def _queries(places: List[Place]) -> List[StationQuery]:
        return [
            StationQuery(
                name=p.name, lat=p.lat, lng=p.lng, address=p.address, road_address=p.road_address
            )
            for p in places
        ]

    async def _enrich_fuel(self, places: List[Place], fuel_type: str = DEFAULT_FUEL_TYPE) -> None:
        if not places:
            return

        matches = [None] * len(places)
        fuel_cache = self.fuel_caches.get(fuel_type)
        if fuel_cache is None:
            logger.warning(f"유종 {fuel_type} 가격 캐시 없음 => 가격 없이 진행")
        else:
            try:
                matches = await fuel_cache.match_by_coordinates(self._queries(places))
            except GilfinderException as e:
                logger.warning(f"주유소 가격 매칭 실패 => 가격 없이 진행: {e.message}")
            except Exception as e:
                logger.error(f"주유소 가격 매칭 중 예상치 못한 오류: {e}", exc_info=True)

        for place, record in zip(places, matches):
            if record is not None:
                place.fuel_price = record.attributes.get("price")
                place.fuel_type = record.attributes.get("prodcd")
                place.is_self_service = is_self_service(place.name, record.name)
            elif is_self_service(place.name):
                place.is_self_service = True

    async def _enrich_ev(self, places: List[Place]) -> None:
        if not places or self.ev_cache is None:
            return

        try:
            matches = await self.ev_cache.match_by_coordinates(self._queries(places))
        except GilfinderException as e:
            logger.warning(f"충전소 매칭 실패 => 충전기 정보 없이 진행: {e.message}")
            return
        except Exception as e:
            logger.error(f"충전소 매칭 중 예상치 못한 오류: {e}", exc_info=True)
            return

        for place, record in zip(places, matches):
            if record is None:
                continue
            attrs = record.attributes
            place.ev_charger_types = [
                CHARGER_TYPE_MAP.get(code, code) for code in attrs.get("charger_types", [])
            ]
            place.ev_max_output = attrs.get("max_output")
            place.ev_operator = attrs.get("operator")
            place.ev_charger_count = attrs.get("charger_count")
            place.ev_use_time = attrs.get("use_time")
            place.ev_parking_free = attrs.get("parking_free")

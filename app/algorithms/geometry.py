"""
경로 기하 유틸리티 (stateless)

- 거리 단위는 km (경로까지 거리는 호출부에서 m로 변환)
- 경로까지 거리는 폴리라인 꼭짓점 기준 근사치 (선분 투영 X)
  => 꼭짓점 간격이 넓은 구간에서는 실제보다 크게 나올 수 있음
"""

import math
from typing import List, Sequence, Tuple

import numpy as np

from app.models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """하버사인 공식으로 두 좌표 간 거리 계산 (km)"""
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])

    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    h = min(1.0, h)  # 부동소수 오차로 1을 넘는 경우 방지

    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def interpolate(a: Coordinate, b: Coordinate, ratio: float) -> Coordinate:
    """위경도 공간 선형 보간 (짧은 구간 근사)"""
    return Coordinate(
        lat=a.lat + (b.lat - a.lat) * ratio,
        lng=a.lng + (b.lng - a.lng) * ratio,
    )


def parse_vertexes(vertexes: Sequence[float]) -> List[Coordinate]:
    """카카오 모빌리티 vertexes [lng, lat, lng, lat, ...] => 좌표 리스트"""
    return [
        Coordinate(lat=float(vertexes[i + 1]), lng=float(vertexes[i]))
        for i in range(0, len(vertexes) - 1, 2)
    ]


def total_distance(polyline: Sequence[Coordinate]) -> float:
    """경로 총 길이 (km)"""
    return sum(
        haversine_distance(polyline[i - 1], polyline[i]) for i in range(1, len(polyline))
    )


def cumulative_distances(polyline: Sequence[Coordinate]) -> List[float]:
    """각 꼭짓점까지의 누적 거리 (km), 첫 값은 0"""
    cum = [0.0]
    for i in range(1, len(polyline)):
        cum.append(cum[-1] + haversine_distance(polyline[i - 1], polyline[i]))
    return cum


def resample_polyline(points: Sequence[Coordinate], interval_km: float) -> List[Coordinate]:
    """
    누적 거리가 interval_km 이상이 될 때마다 꼭짓점을 샘플링

    첫 점과 마지막 점은 항상 포함, 2개 미만이면 그대로 반환
    """
    if len(points) < 2:
        return list(points)

    sampled = [points[0]]
    last_index = 0
    accumulated = 0.0

    for i in range(1, len(points)):
        accumulated += haversine_distance(points[i - 1], points[i])
        if accumulated >= interval_km:
            sampled.append(points[i])
            last_index = i
            accumulated = 0.0

    if last_index != len(points) - 1:
        sampled.append(points[-1])

    return sampled


def _vertex_distances_km(polyline: Sequence[Coordinate], point: Coordinate) -> np.ndarray:
    """점에서 모든 꼭짓점까지 하버사인 거리 (벡터 연산)"""
    coords = np.radians(np.array([[p.lat, p.lng] for p in polyline], dtype=float))
    lat0, lng0 = math.radians(point.lat), math.radians(point.lng)

    dlat = coords[:, 0] - lat0
    dlng = coords[:, 1] - lng0
    h = np.sin(dlat / 2) ** 2 + np.cos(lat0) * np.cos(coords[:, 0]) * np.sin(dlng / 2) ** 2
    h = np.clip(h, 0.0, 1.0)

    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def nearest_vertex(polyline: Sequence[Coordinate], point: Coordinate) -> Tuple[int, float]:
    """가장 가까운 꼭짓점의 (index, 거리 km)"""
    if not polyline:
        return -1, math.inf
    distances = _vertex_distances_km(polyline, point)
    idx = int(np.argmin(distances))
    return idx, float(distances[idx])


def nearest_distance_to_route(polyline: Sequence[Coordinate], point: Coordinate) -> float:
    """경로 꼭짓점 중 가장 가까운 점까지 거리 (km), 빈 경로는 inf"""
    return nearest_vertex(polyline, point)[1]

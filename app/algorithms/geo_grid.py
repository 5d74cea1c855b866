"""
좌표 격자 인덱스

좌표를 소수점 precision 자리에서 내림한 셀 단위로 레코드를 묶음
=> 근처 검색 시 전체 순회(O(n)) 대신 주변 셀만 확인
원본 데이터셋에서 언제든 재생성 가능한 파생 구조 (원천 데이터 X)
"""

import math
from typing import Dict, Iterable, List, Tuple

from app.algorithms.geometry import haversine_distance
from app.models.domain import Coordinate, StationRecord

KM_PER_DEGREE = 111.32


def _cell_index(value: float, precision: int) -> int:
    # round로 37.29 * 100 = 3728.9999... 같은 부동소수 오차 보정
    return math.floor(round(value * 10**precision, 6))


def cell_key_for(lat: float, lng: float, precision: int) -> str:
    """좌표 => 셀 키 ("37.56:126.97"), 같은 입력은 항상 같은 키"""
    return _key_from_index(
        _cell_index(lat, precision), _cell_index(lng, precision), precision
    )


def _key_from_index(lat_idx: int, lng_idx: int, precision: int) -> str:
    scale = 10**precision
    return f"{lat_idx / scale:.{precision}f}:{lng_idx / scale:.{precision}f}"


class GeoGridIndex:
    """셀 키 => 레코드 리스트"""

    def __init__(self, precision: int = 2):
        self.precision = precision
        self.cells: Dict[str, List[StationRecord]] = {}
        self.record_count = 0

    @classmethod
    def from_records(
        cls, records: Iterable[StationRecord], precision: int = 2
    ) -> "GeoGridIndex":
        grid = cls(precision)
        grid.rebuild(records)
        return grid

    @property
    def cell_count(self) -> int:
        return len(self.cells)

    @property
    def cell_size_km(self) -> float:
        """위도 방향 셀 크기 (km)"""
        return KM_PER_DEGREE / 10**self.precision

    def rebuild(self, records: Iterable[StationRecord]) -> None:
        """기존 셀을 버리고 전체 재생성 (멱등)"""
        cells: Dict[str, List[StationRecord]] = {}
        count = 0
        for record in records:
            key = cell_key_for(record.lat, record.lng, self.precision)
            cells.setdefault(key, []).append(record)
            count += 1

        # 한 번에 교체 => 읽는 쪽은 이전 or 새 인덱스만 보게 됨
        self.cells = cells
        self.record_count = count

    def lookup(self, lat: float, lng: float, search_radius_cells: int = 1) -> List[StationRecord]:
        """자기 셀 + 주변 search_radius_cells 칸 링의 레코드 (경계 누락 방지)"""
        cells = self.cells
        lat_idx = _cell_index(lat, self.precision)
        lng_idx = _cell_index(lng, self.precision)

        results: List[StationRecord] = []
        for dlat in range(-search_radius_cells, search_radius_cells + 1):
            for dlng in range(-search_radius_cells, search_radius_cells + 1):
                key = _key_from_index(lat_idx + dlat, lng_idx + dlng, self.precision)
                results.extend(cells.get(key, ()))
        return results

    def radius_in_cells(self, lat: float, radius_km: float) -> int:
        """반경을 덮는 셀 칸 수 (경도 방향 셀이 더 좁으므로 경도 기준)"""
        lng_cell_km = self.cell_size_km * max(math.cos(math.radians(lat)), 0.01)
        return max(1, math.ceil(radius_km / lng_cell_km))

    def nearby(self, lat: float, lng: float, radius_km: float) -> List[Tuple[StationRecord, float]]:
        """반경 내 (레코드, 거리 km) 목록, 가까운 순"""
        origin = Coordinate(lat, lng)
        candidates = self.lookup(lat, lng, self.radius_in_cells(lat, radius_km))

        results = []
        for record in candidates:
            distance_km = haversine_distance(origin, Coordinate(record.lat, record.lng))
            if distance_km <= radius_km:
                results.append((record, distance_km))

        results.sort(key=lambda r: r[1])
        return results

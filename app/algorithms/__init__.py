"""
경로 기하, 좌표 격자, 좌표계 변환, 이름 매칭 유틸리티
"""

from app.algorithms.geometry import (
    haversine_distance,
    resample_polyline,
    nearest_vertex,
    total_distance,
)
from app.algorithms.geo_grid import GeoGridIndex, cell_key_for
from app.algorithms.katec import wgs84_to_katec, katec_to_wgs84
from app.algorithms.name_matching import name_similarity

__all__ = [
    "haversine_distance",
    "resample_polyline",
    "nearest_vertex",
    "total_distance",
    "GeoGridIndex",
    "cell_key_for",
    "wgs84_to_katec",
    "katec_to_wgs84",
    "name_similarity",
]

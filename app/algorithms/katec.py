"""
WGS84 <-> KATEC 좌표 변환

OPINET은 KATEC(Bessel TM, 중심 128E/38N, scale 0.9999, FE 400000, FN 600000)
좌표계를 사용하고 카카오는 WGS84를 사용함
"""

from functools import lru_cache
from typing import Tuple

from pyproj import CRS, Transformer

KATEC_PROJ = (
    "+proj=tmerc +lat_0=38 +lon_0=128 +k=0.9999 +x_0=400000 +y_0=600000 "
    "+ellps=bessel +units=m +no_defs "
    "+towgs84=-115.80,474.99,674.11,1.16,-2.31,-1.63,6.43"
)


@lru_cache()
def _to_katec() -> Transformer:
    return Transformer.from_crs(CRS.from_epsg(4326), CRS.from_proj4(KATEC_PROJ), always_xy=True)


@lru_cache()
def _to_wgs84() -> Transformer:
    return Transformer.from_crs(CRS.from_proj4(KATEC_PROJ), CRS.from_epsg(4326), always_xy=True)


def wgs84_to_katec(lng: float, lat: float) -> Tuple[float, float]:
    """(경도, 위도) => KATEC (x, y) 미터"""
    x, y = _to_katec().transform(lng, lat)
    return x, y


def katec_to_wgs84(x: float, y: float) -> Tuple[float, float]:
    """KATEC (x, y) => (경도, 위도)"""
    lng, lat = _to_wgs84().transform(x, y)
    return lng, lat

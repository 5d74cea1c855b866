import logging
from typing import Any, Dict, List, Optional

import httpx

from app.clients.base import BaseApiClient
from app.core.config import settings
from app.models.domain import Place

logger = logging.getLogger(__name__)

KAKAO_LOCAL_BASE = "https://dapi.kakao.com/v2/local/search"
MAX_RADIUS_M = 20000  # 카카오 로컬 API 제한
PAGE_SIZE = 15


class KakaoLocalClient(BaseApiClient):
    """카카오 로컬 키워드/카테고리 장소 검색"""

    source = "kakao_local"

    def __init__(
        self,
        api_key: str = settings.KAKAO_REST_KEY,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        super().__init__(api_key, http_client, timeout)

    async def search_places(
        self,
        keyword: str,
        category_code: str,
        lat: float,
        lng: float,
        radius: int,
        sort: str = "distance",
        page: int = 1,
    ) -> List[Place]:
        """
        좌표 주변 장소 검색

        키워드 없이 카테고리 코드만 있으면 카테고리 검색 API 사용
        반환 Place.distance는 검색 중심점까지 거리 (경로까지 거리 X)
        """
        api_key = self._require_key()

        params: Dict[str, Any] = {
            "x": str(lng),
            "y": str(lat),
            "radius": str(min(int(radius), MAX_RADIUS_M)),
            "sort": sort,
            "size": str(PAGE_SIZE),
            "page": str(page),
        }
        if not keyword and category_code:
            endpoint = "category"
            params["category_group_code"] = category_code
        else:
            endpoint = "keyword"
            params["query"] = keyword
            if category_code:
                params["category_group_code"] = category_code

        data = await self._get_json(
            f"{KAKAO_LOCAL_BASE}/{endpoint}.json",
            params=params,
            headers={"Authorization": f"KakaoAK {api_key}"},
        )
        documents = data.get("documents") or []
        return [p for p in (self._parse_document(d) for d in documents) if p is not None]

    @staticmethod
    def _parse_document(doc: Dict[str, Any]) -> Optional[Place]:
        try:
            lat = float(doc["y"])
            lng = float(doc["x"])
        except (KeyError, TypeError, ValueError):
            logger.debug(f"좌표 없는 장소 무시: {doc.get('place_name')}")
            return None

        try:
            distance = int(doc.get("distance") or 0)
        except ValueError:
            distance = 0

        return Place(
            id=str(doc.get("id", "")),
            name=doc.get("place_name", ""),
            category=doc.get("category_group_name") or doc.get("category_name") or "",
            category_code=doc.get("category_group_code") or "",
            lat=lat,
            lng=lng,
            address=doc.get("address_name") or "",
            road_address=doc.get("road_address_name") or "",
            phone=doc.get("phone") or "",
            place_url=doc.get("place_url") or "",
            distance=distance,
        )

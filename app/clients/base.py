"""
외부 API 클라이언트 공통 부분

- 모든 호출은 httpx.AsyncClient + 명시적 timeout
- 네트워크/HTTP 오류는 UpstreamUnavailableException으로 변환
- API 키 누락은 ConfigurationMissingException
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import (
    ConfigurationMissingException,
    UpstreamUnavailableException,
)
from app.models.domain import StationRecord

logger = logging.getLogger(__name__)


class BaseApiClient:
    source = "api"

    def __init__(
        self,
        api_key: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        # 외부에서 주입한 client는 닫지 않음 (테스트용 MockTransport 등)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0)
        )

    def _require_key(self, api_key: Optional[str] = None) -> str:
        key = api_key or self.api_key
        if not key:
            raise ConfigurationMissingException(f"{self.source} API 키가 설정되지 않았습니다")
        return key

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableException(
                f"{self.source} 응답 오류: HTTP {e.response.status_code}", source=self.source
            ) from e
        except httpx.RequestError as e:
            # timeout 포함
            raise UpstreamUnavailableException(
                f"{self.source} 호출 실패: {type(e).__name__}", source=self.source
            ) from e

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self._request("GET", url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableException(
                f"{self.source} 응답 파싱 실패", source=self.source
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class StationProvider(ABC):
    """주유소/충전소 데이터셋 수집기 (지역 단위 조회)"""

    name = "station"

    @abstractmethod
    def default_regions(self) -> List[Any]:
        """전체 갱신 시 조회할 지역 목록"""

    @abstractmethod
    def region_id(self, region: Any) -> str:
        """지역 식별자 => StationRecord.region 값과 동일"""

    @abstractmethod
    async def fetch_region(self, api_key: str, region: Any) -> List[StationRecord]:
        """한 지역의 정규화된 레코드, 실패 시 UpstreamUnavailableException"""

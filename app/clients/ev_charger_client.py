"""
한국환경공단 전기자동차 충전소 정보 (data.go.kr EvCharger/getChargerInfo)

응답은 충전기 단위 => statId 기준으로 충전소 단위 집계
XML/JSON 둘 다 올 수 있음 (키 종류/요청 옵션에 따라 다름)
"""

import json
import logging
import math
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from app.clients.base import BaseApiClient, StationProvider
from app.core.config import settings
from app.core.exceptions import UpstreamUnavailableException
from app.core.regions import EV_ZCODES, zcode_from_address
from app.models.domain import StationRecord

logger = logging.getLogger(__name__)

EV_API_URL = "https://apis.data.go.kr/B552584/EvCharger/getChargerInfo"
PAGE_SIZE = 9999

ChargerRow = Dict[str, Any]


def parse_charger_payload(text: str) -> Tuple[List[ChargerRow], int]:
    """응답 본문 => (충전기 행 목록, totalCount)"""
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            return _parse_json(json.loads(stripped))
        except ValueError:
            logger.debug("JSON 파싱 실패 => XML로 재시도")
    return _parse_xml(stripped)


def _parse_json(payload: Dict[str, Any]) -> Tuple[List[ChargerRow], int]:
    body = payload.get("body") or {}
    items = payload.get("items") or body.get("items") or {}
    rows = items.get("item", []) if isinstance(items, dict) else items
    if isinstance(rows, dict):
        rows = [rows]
    total = body.get("totalCount") or payload.get("totalCount") or 0
    return list(rows or []), int(total)


def _parse_xml(text: str) -> Tuple[List[ChargerRow], int]:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise UpstreamUnavailableException(
            f"충전소 응답 파싱 실패: {e}", source="ev_charger"
        ) from e

    rows = [{child.tag: (child.text or "") for child in item} for item in root.iter("item")]
    total_text = root.findtext(".//totalCount")
    try:
        total = int(total_text) if total_text else 0
    except ValueError:
        total = 0
    return rows, total


def aggregate_by_station(rows: List[ChargerRow], region: str = "") -> List[StationRecord]:
    """
    충전기 행 => 충전소(statId) 단위 레코드

    - 충전기 타입: 중복 제거, 처음 나온 순서 유지
    - 최대 출력(kW), 충전기 수 집계
    - 좌표 없는 행은 버림
    """
    stations: Dict[str, StationRecord] = {}

    for row in rows:
        stat_id = row.get("statId")
        try:
            lat = float(row.get("lat") or 0)
            lng = float(row.get("lng") or 0)
        except (TypeError, ValueError):
            continue
        if not stat_id or not lat or not lng:
            continue

        charger_type = row.get("chgerType") or ""
        try:
            output = int(float(row.get("output") or 0))
        except (TypeError, ValueError):
            output = 0

        existing = stations.get(stat_id)
        if existing is not None:
            attrs = existing.attributes
            if charger_type and charger_type not in attrs["charger_types"]:
                attrs["charger_types"].append(charger_type)
            attrs["max_output"] = max(attrs["max_output"], output)
            attrs["charger_count"] += 1
            continue

        address = row.get("addr") or ""
        # 응답에 zcode가 빠진 행은 주소로 지역 판정
        zcode = row.get("zcode") or zcode_from_address(address) or ""
        stations[stat_id] = StationRecord(
            external_id=str(stat_id),
            name=row.get("statNm") or "",
            lat=lat,
            lng=lng,
            address=address,
            region=region or zcode,
            attributes={
                "charger_types": [charger_type] if charger_type else [],
                "max_output": output,
                "charger_count": 1,
                "operator": row.get("busiNm") or "",
                "use_time": row.get("useTime") or "",
                "parking_free": row.get("parkingFree") == "Y",
                "zcode": zcode or region,
            },
        )

    return list(stations.values())


class EvChargerClient(BaseApiClient, StationProvider):
    source = "ev_charger"
    name = "ev"

    def __init__(
        self,
        api_key: str = settings.DATA_GO_KR_API_KEY,
        page_size: int = PAGE_SIZE,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.EV_API_TIMEOUT_SECONDS,
    ):
        super().__init__(api_key, http_client, timeout)
        self.page_size = page_size

    def default_regions(self) -> List[str]:
        return [code for code, _ in EV_ZCODES]

    def region_id(self, region: str) -> str:
        return str(region)

    async def fetch_page(self, api_key: str, zcode: str, page_no: int) -> Tuple[List[ChargerRow], int]:
        # 공공데이터 인코딩 키는 이미 URL 인코딩되어 있으므로 그대로 붙임
        query = urlencode({"zcode": zcode, "pageNo": page_no, "numOfRows": self.page_size})
        url = f"{EV_API_URL}?ServiceKey={api_key}&{query}"
        response = await self._request("GET", url)
        return parse_charger_payload(response.text)

    async def fetch_region(self, api_key: str, region: str) -> List[StationRecord]:
        key = self._require_key(api_key)
        zcode = self.region_id(region)

        rows, total_count = await self.fetch_page(key, zcode, 1)
        pages = max(1, math.ceil(total_count / self.page_size)) if total_count else 1

        # 한 페이지를 넘는 지역(경기, 서울 등)은 추가 페이지 순차 조회
        for page_no in range(2, pages + 1):
            extra, _ = await self.fetch_page(key, zcode, page_no)
            if not extra:
                break
            rows.extend(extra)

        records = aggregate_by_station(rows, zcode)
        logger.info(f"충전소 지역 {zcode}: 충전기 {len(rows)}개 => 충전소 {len(records)}개")
        return records

"""
외부 API 클라이언트 (카카오 로컬/모빌리티, OPINET, 환경공단 충전소)
"""

from app.clients.base import BaseApiClient, StationProvider
from app.clients.kakao_local_client import KakaoLocalClient
from app.clients.kakao_mobility_client import KakaoMobilityClient
from app.clients.opinet_client import OpinetClient
from app.clients.ev_charger_client import EvChargerClient

__all__ = [
    "BaseApiClient",
    "StationProvider",
    "KakaoLocalClient",
    "KakaoMobilityClient",
    "OpinetClient",
    "EvChargerClient",
]

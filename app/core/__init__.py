"""
Core 설정 및 utilities, 커스텀 예외
"""

from app.core.config import settings

from app.core.exceptions import (
    GilfinderException,
    UpstreamUnavailableException,
    ConfigurationMissingException,
    MalformedInputException,
)

__all__ = [
    "settings",
    "GilfinderException",
    "UpstreamUnavailableException",
    "ConfigurationMissingException",
    "MalformedInputException",
]

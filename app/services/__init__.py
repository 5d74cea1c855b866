"""
Business logic services
"""

from app.services.station_cache import StationDatasetCache
from app.services.route_search_service import RouteCandidateSelector
from app.services.recommendation_service import calculate_score, sort_by_recommendation

__all__ = [
    "StationDatasetCache",
    "RouteCandidateSelector",
    "calculate_score",
    "sort_by_recommendation",
]

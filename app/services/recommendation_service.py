import math
import logging
from typing import List

from app.core.config import (
    DEFAULT_RATING,
    DETOUR_DECAY_RATE,
    FUEL_BONUS_DIVISOR,
    FUEL_REFERENCE_PRICE,
)
from app.models.domain import Place

logger = logging.getLogger(__name__)


def calculate_score(place: Place) -> float:
    """
    추천 점수 = 평점^1.5 * (log10(리뷰수 + 1) + 1) * exp(-우회분 * 0.05) + 유가 보너스

    - 평점 없으면 3.5
    - 유가 보너스 = (2000 - 가격) / 500, 가격 있는 주유소만 (2000원 초과면 음수)
    """
    rating = place.rating if place.rating is not None else DEFAULT_RATING
    review_count = place.review_count or 0

    rating_score = rating**1.5
    review_weight = math.log10(review_count + 1) + 1
    detour_decay = math.exp(-place.detour_minutes * DETOUR_DECAY_RATE)

    fuel_bonus = 0.0
    if place.fuel_price is not None:
        fuel_bonus = (FUEL_REFERENCE_PRICE - place.fuel_price) / FUEL_BONUS_DIVISOR

    return rating_score * review_weight * detour_decay + fuel_bonus


def sort_by_recommendation(places: List[Place]) -> List[Place]:
    """점수 내림차순 (동점은 기존 순서 유지), 각 장소의 score 채움"""
    for place in places:
        place.score = calculate_score(place)
    return sorted(places, key=lambda p: -p.score)

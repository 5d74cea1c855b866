"""
Celery tasks for 데이터셋 갱신
"""

from app.tasks.celery_app import celery
from app.tasks.tasks import refresh_fuel_prices, refresh_ev_stations_batch

__all__ = [
    "celery",
    "refresh_fuel_prices",
    "refresh_ev_stations_batch",
]

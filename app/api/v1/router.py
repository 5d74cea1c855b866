"""API v1 main router
모든 엔드포인트를 통합하여 하나의 API 라우터로 제공
"""

from fastapi import APIRouter
from app.api.v1.endpoints import route, stations

# API v1 main router
api_router = APIRouter()

# 각 엔드 포인트 라우터 통합
api_router.include_router(route.router, prefix="/route", tags=["route"])

api_router.include_router(stations.fuel_router, prefix="/fuel", tags=["fuel"])

api_router.include_router(stations.ev_router, prefix="/ev", tags=["ev"])

api_router.include_router(stations.router, tags=["stations"])

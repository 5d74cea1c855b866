"""
Celery 갱신 작업 테스트 (워커 없이 직접 호출)
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.core.config import settings
from app.core.exceptions import ConfigurationMissingException, MalformedInputException
from app.models.domain import BatchRefreshResult, RefreshResult
from app.tasks.celery_app import celery
from app.tasks.tasks import refresh_ev_stations_batch, refresh_fuel_prices


@pytest.fixture
def mock_cache():
    cache = MagicMock()
    cache.provider.aclose = AsyncMock()
    return cache


@pytest.fixture
def redis_stub(mocker, disabled_redis_cache):
    mocker.patch("app.tasks.tasks.init_redis", return_value=disabled_redis_cache)
    return disabled_redis_cache


class TestRefreshTasks:
    def test_beat_schedule(self):
        schedule = celery.conf.beat_schedule

        fuel_entries = {name: entry for name, entry in schedule.items() if name.startswith("refresh-fuel-prices-")}
        assert sorted(fuel_entries) == [
            "refresh-fuel-prices-diesel",
            "refresh-fuel-prices-gasoline",
            "refresh-fuel-prices-lpg",
        ]
        assert all(e["task"] == "app.tasks.tasks.refresh_fuel_prices" for e in fuel_entries.values())
        assert fuel_entries["refresh-fuel-prices-diesel"]["args"] == ("diesel",)
        assert schedule["refresh-ev-stations-batch"]["task"] == "app.tasks.tasks.refresh_ev_stations_batch"

    def test_fuel_requires_key(self, mocker):
        mocker.patch.object(settings, "OPINET_API_KEY", "")

        with pytest.raises(ConfigurationMissingException):
            refresh_fuel_prices()

    def test_ev_requires_key(self, mocker):
        mocker.patch.object(settings, "DATA_GO_KR_API_KEY", "")

        with pytest.raises(ConfigurationMissingException):
            refresh_ev_stations_batch()

    def test_fuel_refresh(self, mocker, mock_cache, redis_stub):
        mocker.patch.object(settings, "OPINET_API_KEY", "opinet-key")
        mock_cache.refresh = AsyncMock(return_value=RefreshResult(total_records=1200, api_calls=180, errors=0))
        factory = mocker.patch("app.tasks.tasks.create_fuel_cache", return_value=mock_cache)

        result = refresh_fuel_prices()

        assert result["total_records"] == 1200
        factory.assert_called_once_with(redis_stub, fuel_code="B027")
        mock_cache.refresh.assert_awaited_once_with("opinet-key")
        mock_cache.provider.aclose.assert_awaited_once()

    def test_fuel_refresh_per_fuel_type(self, mocker, mock_cache, redis_stub):
        """유종 인자 => 해당 유종 코드의 캐시만 갱신"""
        mocker.patch.object(settings, "OPINET_API_KEY", "opinet-key")
        mock_cache.refresh = AsyncMock(return_value=RefreshResult(total_records=900, api_calls=180, errors=0))
        factory = mocker.patch("app.tasks.tasks.create_fuel_cache", return_value=mock_cache)

        refresh_fuel_prices("diesel")

        factory.assert_called_once_with(redis_stub, fuel_code="D047")

    def test_fuel_refresh_unknown_fuel_type(self, mocker):
        mocker.patch.object(settings, "OPINET_API_KEY", "opinet-key")
        factory = mocker.patch("app.tasks.tasks.create_fuel_cache")

        with pytest.raises(MalformedInputException):
            refresh_fuel_prices("kerosene")

        factory.assert_not_called()

    def test_ev_batch_refresh(self, mocker, mock_cache, redis_stub):
        mocker.patch.object(settings, "DATA_GO_KR_API_KEY", "data-key")
        mock_cache.refresh_next_batch = AsyncMock(
            return_value=BatchRefreshResult(
                total_records=5000,
                api_calls=2,
                errors=0,
                regions_refreshed=["11", "26"],
                next_offset=2,
            )
        )
        mocker.patch("app.tasks.tasks.create_ev_cache", return_value=mock_cache)

        result = refresh_ev_stations_batch(2)

        assert result["regions_refreshed"] == ["11", "26"]
        assert result["next_offset"] == 2
        mock_cache.refresh_next_batch.assert_awaited_once_with("data-key", 2)

    def test_provider_closed_on_failure(self, mocker, mock_cache, redis_stub):
        mocker.patch.object(settings, "DATA_GO_KR_API_KEY", "data-key")
        mock_cache.refresh_next_batch = AsyncMock(side_effect=RuntimeError("boom"))
        mocker.patch("app.tasks.tasks.create_ev_cache", return_value=mock_cache)

        with pytest.raises(RuntimeError):
            refresh_ev_stations_batch(1)

        mock_cache.provider.aclose.assert_awaited_once()

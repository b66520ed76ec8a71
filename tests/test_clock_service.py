"""
Unit tests for ClockService — time machine and auto-approve switch.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from investment_engine.core.exceptions import ForbiddenException
from investment_engine.models.app_setting import AUTO_APPROVE_KEY, TIME_MACHINE_KEY
from investment_engine.services.clock_service import ClockService

from .conftest import ADMIN, NOW, OWNER


@pytest.fixture()
def setting_repo():
    repo = AsyncMock()
    repo.get_value.return_value = None
    return repo


@pytest.fixture()
def service(setting_repo):
    return ClockService(setting_repo)


class TestTimeMachine:
    @pytest.mark.asyncio
    async def test_real_time_without_override(self, service):
        clock = await service.get_clock()
        assert not clock.is_overridden
        assert abs(clock.now() - datetime.now(timezone.utc)) < timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_stored_override_pins_clock(self, service, setting_repo):
        setting_repo.get_value.return_value = NOW.isoformat()

        clock = await service.get_clock()

        assert clock.is_overridden
        assert clock.now() == NOW
        setting_repo.get_value.assert_awaited_with(TIME_MACHINE_KEY)

    @pytest.mark.asyncio
    async def test_set_stores_utc_instant(self, service, setting_repo):
        plus_two = timezone(timedelta(hours=2))
        clock = await service.set_time_machine(datetime(2024, 4, 1, 2, 0, tzinfo=plus_two), ADMIN)

        assert clock.now() == NOW
        setting_repo.set_value.assert_awaited_once_with(
            TIME_MACHINE_KEY, NOW.isoformat(), "admin:ops-1"
        )

    @pytest.mark.asyncio
    async def test_reset(self, service, setting_repo):
        clock = await service.reset_time_machine(ADMIN)
        assert not clock.is_overridden
        setting_repo.set_value.assert_awaited_once_with(TIME_MACHINE_KEY, None, "admin:ops-1")

    @pytest.mark.asyncio
    async def test_only_admins(self, service, setting_repo):
        with pytest.raises(ForbiddenException):
            await service.set_time_machine(NOW, OWNER)
        with pytest.raises(ForbiddenException):
            await service.reset_time_machine(OWNER)
        setting_repo.set_value.assert_not_awaited()


class TestAutoApprove:
    @pytest.mark.asyncio
    async def test_defaults_to_setting(self, service):
        assert await service.auto_approve_enabled() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw, expected", [("true", True), ("ON", True), ("false", False)])
    async def test_reads_stored_flag(self, service, setting_repo, raw, expected):
        setting_repo.get_value.return_value = raw
        assert await service.auto_approve_enabled() is expected

    @pytest.mark.asyncio
    async def test_set(self, service, setting_repo):
        assert await service.set_auto_approve(True, ADMIN) is True
        setting_repo.set_value.assert_awaited_once_with(AUTO_APPROVE_KEY, "true", "admin:ops-1")

    @pytest.mark.asyncio
    async def test_set_requires_admin(self, service):
        with pytest.raises(ForbiddenException):
            await service.set_auto_approve(True, OWNER)

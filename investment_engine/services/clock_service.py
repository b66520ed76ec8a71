"""
Clock service — the administrator's time machine and auto-approve switch.

Both live in the ``app_settings`` table.  They are read once per operation and
handed to the engine as plain values (a :class:`Clock`, a ``bool``); the
engine never looks them up itself.
"""

import logging
from datetime import datetime
from typing import Optional

from investment_engine.core.authorization import authorize_admin
from investment_engine.core.config import settings
from investment_engine.engine.actor import Actor
from investment_engine.engine.clock import Clock, as_utc
from investment_engine.models.app_setting import AUTO_APPROVE_KEY, TIME_MACHINE_KEY
from investment_engine.repositories.setting_repo import SettingRepository

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}


class ClockService:
    """Builds the per-operation :class:`Clock` and owns the two admin switches."""

    def __init__(self, setting_repo: SettingRepository):
        self._repo = setting_repo

    # ── Time machine ──

    async def override_instant(self) -> Optional[datetime]:
        raw = await self._repo.get_value(TIME_MACHINE_KEY)
        if not raw:
            return None
        return as_utc(datetime.fromisoformat(raw))

    async def get_clock(self) -> Clock:
        override = await self.override_instant()
        return Clock.at(override) if override is not None else Clock.system()

    async def set_time_machine(self, instant: datetime, actor: Actor) -> Clock:
        authorize_admin(actor, "set the time machine")
        instant = as_utc(instant)
        await self._repo.set_value(TIME_MACHINE_KEY, instant.isoformat(), str(actor))
        logger.warning("Time machine set to %s by %s", instant.isoformat(), actor)
        return Clock.at(instant)

    async def reset_time_machine(self, actor: Actor) -> Clock:
        authorize_admin(actor, "reset the time machine")
        await self._repo.set_value(TIME_MACHINE_KEY, None, str(actor))
        logger.warning("Time machine reset by %s", actor)
        return Clock.system()

    # ── Auto-approve ──

    async def auto_approve_enabled(self) -> bool:
        raw = await self._repo.get_value(AUTO_APPROVE_KEY)
        if raw is None:
            return settings.AUTO_APPROVE_DISTRIBUTIONS
        return raw.strip().lower() in _TRUE

    async def set_auto_approve(self, enabled: bool, actor: Actor) -> bool:
        authorize_admin(actor, "change distribution auto-approval")
        await self._repo.set_value(AUTO_APPROVE_KEY, "true" if enabled else "false", str(actor))
        logger.info("Distribution auto-approval %s by %s", "enabled" if enabled else "disabled", actor)
        return enabled

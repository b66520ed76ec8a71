"""Key/value access to the ``app_settings`` table."""

from datetime import datetime, timezone
from typing import Optional

from investment_engine.models.app_setting import AppSetting
from investment_engine.repositories.base import BaseRepository


class SettingRepository(BaseRepository[AppSetting]):
    """Concrete repository for :class:`AppSetting` rows."""

    async def get_value(self, key: str) -> Optional[str]:
        row = await self.get(key)
        return row.value if row is not None else None

    async def set_value(self, key: str, value: Optional[str], updated_by: str) -> AppSetting:
        """Upsert ``key`` and commit."""
        row = await self.get(key)
        if row is None:
            row = AppSetting(key=key)
        row.value = value
        row.updated_by = updated_by
        row.updated_at = datetime.now(timezone.utc)
        await self.add(row)
        await self.commit()
        return row

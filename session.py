from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from config import YamlConfig
from settings_schema import validate_settings


class SessionState:
    """Current user and plan ids, persisted through the settings file."""

    def __init__(self, config: YamlConfig | None = None) -> None:
        self.config = config or YamlConfig()
        self._user_id: Optional[str] = None
        self._plan_id: Optional[str] = None

    async def load_stored_user_id(self) -> Optional[str]:
        try:
            data = await asyncio.to_thread(self.config.load)
            settings = validate_settings(data)
        except (OSError, ValueError) as e:
            logger.error("Failed to load stored user id", error=str(e))
            return None
        if settings.user_id:
            self._user_id = settings.user_id
        if settings.plan_id and not self._plan_id:
            self._plan_id = settings.plan_id
        return settings.user_id

    def get_current_user_id(self) -> Optional[str]:
        return self._user_id

    async def ensure_current_user_id(self) -> Optional[str]:
        if self._user_id:
            return self._user_id
        return await self.load_stored_user_id()

    async def resolve_current_user_id(self) -> Optional[str]:
        return await self.ensure_current_user_id()

    def set_current_user_id(self, user_id: Optional[str]) -> None:
        self._user_id = str(user_id) if user_id is not None else None
        self._plan_id = None
        self.config.update(user_id=self._user_id, plan_id=None)

    def clear_current_user_id(self) -> None:
        self.set_current_user_id(None)

    def get_cached_plan_id(self) -> Optional[str]:
        return self._plan_id

    def set_current_plan_id(self, plan_id: Optional[str]) -> None:
        self._plan_id = str(plan_id) if plan_id is not None else None
        if self._user_id:
            self.config.update(plan_id=self._plan_id)


class StaticSession:
    """Request-scoped identity for callers that already know the user."""

    def __init__(self, user_id, plan_id=None) -> None:
        self.user_id = str(user_id) if user_id is not None else None
        self.plan_id = str(plan_id) if plan_id is not None else None

    async def resolve_current_user_id(self) -> Optional[str]:
        return self.user_id

    def get_cached_plan_id(self) -> Optional[str]:
        return self.plan_id

    def set_current_plan_id(self, plan_id: Optional[str]) -> None:
        self.plan_id = str(plan_id) if plan_id is not None else None

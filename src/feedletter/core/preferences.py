"""用户 Newsletter 偏好."""

import logging

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.errors import wrap_persistence
from feedletter.models.newsletter import UserSettings
from feedletter.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class UserSettingsInput(BaseModel):
    """偏好写入请求，未给出的字段清空."""

    newsletter_name: str | None = None
    description: str | None = None
    target_audience: str | None = None
    default_tone: str | None = None
    brand_voice: str | None = None
    company_name: str | None = None
    industry: str | None = None
    disclaimer_text: str | None = None
    default_tags: list[str] = []
    custom_footer: str | None = None
    sender_name: str | None = None
    sender_email: str | None = None


class PreferencesService:
    """按用户读写偏好，每个用户最多一条."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, owner_id: str) -> UserSettings | None:
        return await self.session.get(UserSettings, owner_id)

    async def upsert(self, owner_id: str, data: UserSettingsInput) -> UserSettings:
        """不存在则创建，存在则整体覆盖."""
        settings = await self.get(owner_id)
        if settings is None:
            settings = UserSettings(owner_id=owner_id)
            self.session.add(settings)

        for key, value in data.model_dump().items():
            setattr(settings, key, value)
        settings.updated_at = utcnow()

        async def _save() -> UserSettings:
            await self.session.commit()
            return settings

        return await wrap_persistence(_save, "save user settings")

    async def delete(self, owner_id: str) -> None:
        settings = await self.get(owner_id)
        if settings is None:
            return

        async def _delete() -> None:
            await self.session.delete(settings)
            await self.session.commit()

        await wrap_persistence(_delete, "delete user settings")
        logger.info(f"已删除用户偏好: {owner_id}")

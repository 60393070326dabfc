"""用户偏好 API."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.core.preferences import PreferencesService, UserSettingsInput
from feedletter.models.database import get_session
from feedletter.models.newsletter import UserSettings

router = APIRouter(prefix="/api/users", tags=["preferences"])


def _settings_to_dict(settings: UserSettings) -> dict[str, Any]:
    data = settings.model_dump(exclude={"created_at", "updated_at"})
    data["updated_at"] = settings.updated_at.isoformat()
    return data


def _service(session: AsyncSession = Depends(get_session)) -> PreferencesService:
    return PreferencesService(session)


@router.get("/{owner_id}/settings")
async def get_user_settings(
    owner_id: str,
    service: PreferencesService = Depends(_service),
) -> dict:
    """获取用户偏好，未设置时 settings 为 null."""
    settings = await service.get(owner_id)
    return {
        "owner_id": owner_id,
        "settings": _settings_to_dict(settings) if settings else None,
    }


@router.put("/{owner_id}/settings")
async def put_user_settings(
    owner_id: str,
    body: UserSettingsInput,
    service: PreferencesService = Depends(_service),
) -> dict:
    """创建或覆盖用户偏好."""
    settings = await service.upsert(owner_id, body)
    return {"owner_id": owner_id, "settings": _settings_to_dict(settings)}


@router.delete("/{owner_id}/settings")
async def delete_user_settings(
    owner_id: str,
    service: PreferencesService = Depends(_service),
) -> dict:
    await service.delete(owner_id)
    return {"success": True}

"""Newsletter 历史 API."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.core.newsletters import DEFAULT_HISTORY_LIMIT, NewsletterService
from feedletter.errors import NewsletterNotFoundError
from feedletter.llm.synthesizer import GeneratedNewsletter
from feedletter.models.database import get_session
from feedletter.models.newsletter import Newsletter

router = APIRouter(prefix="/api/newsletters", tags=["newsletters"])


class SaveNewsletterRequest(BaseModel):
    """保存生成结果请求."""

    owner_id: str
    newsletter: GeneratedNewsletter
    feed_ids: list[str]
    start_date: datetime
    end_date: datetime
    user_input: str | None = None


def _newsletter_to_dict(newsletter: Newsletter) -> dict[str, Any]:
    return {
        "id": newsletter.id,
        "owner_id": newsletter.owner_id,
        "suggested_titles": newsletter.suggested_titles,
        "suggested_subject_lines": newsletter.suggested_subject_lines,
        "body": newsletter.body,
        "top_announcements": newsletter.top_announcements,
        "additional_info": newsletter.additional_info,
        "start_date": newsletter.start_date.isoformat(),
        "end_date": newsletter.end_date.isoformat(),
        "user_input": newsletter.user_input,
        "feeds_used": newsletter.feeds_used,
        "created_at": newsletter.created_at.isoformat(),
    }


def _service(session: AsyncSession = Depends(get_session)) -> NewsletterService:
    return NewsletterService(session)


@router.get("")
async def list_newsletters(
    owner_id: str = Query(..., description="用户 ID"),
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=200, description="返回数量"),
    service: NewsletterService = Depends(_service),
) -> dict:
    """获取用户的 Newsletter 历史（最新在前）."""
    newsletters = await service.list_by_owner(owner_id, limit=limit)
    return {
        "total": await service.count(owner_id),
        "items": [_newsletter_to_dict(newsletter) for newsletter in newsletters],
    }


@router.post("", status_code=201)
async def save_newsletter(
    body: SaveNewsletterRequest,
    service: NewsletterService = Depends(_service),
) -> dict:
    """保存一次生成结果."""
    newsletter = await service.save(
        body.owner_id,
        body.newsletter,
        body.feed_ids,
        body.start_date,
        body.end_date,
        body.user_input,
    )
    return _newsletter_to_dict(newsletter)


@router.get("/count")
async def count_newsletters(
    owner_id: str = Query(..., description="用户 ID"),
    service: NewsletterService = Depends(_service),
) -> dict:
    return {"owner_id": owner_id, "count": await service.count(owner_id)}


@router.get("/latest")
async def latest_newsletter(
    owner_id: str = Query(..., description="用户 ID"),
    service: NewsletterService = Depends(_service),
) -> dict:
    """用户最近一次保存的 Newsletter."""
    newsletter = await service.latest(owner_id)
    if newsletter is None:
        msg = f"No newsletters found for user {owner_id}"
        raise NewsletterNotFoundError(msg)
    return _newsletter_to_dict(newsletter)


@router.get("/range")
async def newsletters_in_range(
    owner_id: str = Query(..., description="用户 ID"),
    start_date: datetime = Query(..., description="创建时间起点"),
    end_date: datetime = Query(..., description="创建时间终点"),
    service: NewsletterService = Depends(_service),
) -> dict:
    """按创建时间筛选."""
    newsletters = await service.list_by_date_range(owner_id, start_date, end_date)
    return {
        "total": len(newsletters),
        "items": [_newsletter_to_dict(newsletter) for newsletter in newsletters],
    }


@router.get("/{newsletter_id}")
async def get_newsletter(
    newsletter_id: str,
    service: NewsletterService = Depends(_service),
) -> dict:
    newsletter = await service.get(newsletter_id)
    return _newsletter_to_dict(newsletter)


@router.delete("/{newsletter_id}")
async def delete_newsletter(
    newsletter_id: str,
    owner_id: str | None = Query(None, description="只允许删除该用户的 Newsletter"),
    service: NewsletterService = Depends(_service),
) -> dict:
    await service.delete(newsletter_id, owner_id=owner_id)
    return {"success": True}

"""Feed 订阅源 API."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.api.deps import get_pipeline, get_refresher
from feedletter.core.pipeline import NewsletterPipeline
from feedletter.core.refresh import FeedRefresher
from feedletter.core.subscriptions import SubscriptionService
from feedletter.models.database import get_session
from feedletter.models.feed import Feed

router = APIRouter(prefix="/api/feeds", tags=["feeds"])


class AddFeedRequest(BaseModel):
    """新增订阅请求."""

    url: str
    owner_id: str | None = None


class RefreshStaleRequest(BaseModel):
    """刷新过期 Feed 请求."""

    feed_ids: list[str]


def _feed_to_dict(feed: Feed) -> dict[str, Any]:
    return {
        "id": feed.id,
        "owner_id": feed.owner_id,
        "url": feed.url,
        "title": feed.title,
        "description": feed.description,
        "link": feed.link,
        "image_url": feed.image_url,
        "language": feed.language,
        "is_active": feed.is_active,
        "last_fetched": feed.last_fetched.isoformat() if feed.last_fetched else None,
        "created_at": feed.created_at.isoformat(),
        "updated_at": feed.updated_at.isoformat(),
    }


def _service(
    session: AsyncSession = Depends(get_session),
    refresher: FeedRefresher = Depends(get_refresher),
) -> SubscriptionService:
    return SubscriptionService(session, refresher)


@router.get("")
async def list_feeds(
    owner_id: str | None = Query(None, description="按订阅者筛选"),
    include_inactive: bool = Query(False, description="包含已停用的 Feed"),
    service: SubscriptionService = Depends(_service),
) -> dict:
    """获取订阅列表."""
    feeds = await service.list_feeds(owner_id, include_inactive=include_inactive)
    return {
        "total": len(feeds),
        "items": [_feed_to_dict(feed) for feed in feeds],
    }


@router.post("", status_code=201)
async def add_feed(
    body: AddFeedRequest,
    service: SubscriptionService = Depends(_service),
) -> dict:
    """校验并新增订阅."""
    result = await service.add_feed(body.owner_id, body.url)
    return {
        "feed": _feed_to_dict(result.feed),
        "articles_created": result.articles_created,
        "articles_merged": result.articles_merged,
        "articles_skipped": result.articles_skipped,
        "error": result.error,
    }


@router.post("/refresh-stale")
async def refresh_stale_feeds(
    body: RefreshStaleRequest,
    pipeline: NewsletterPipeline = Depends(get_pipeline),
) -> dict:
    """只刷新超出缓存窗口的 Feed."""
    stale_ids = await pipeline.get_stale_feed_ids(body.feed_ids)
    summary = await pipeline.refresh(stale_ids, total=len(body.feed_ids))
    return {
        "requested": len(body.feed_ids),
        "stale": stale_ids,
        "summary": summary.to_dict() if summary else None,
    }


@router.get("/count")
async def count_active_feeds(
    owner_id: str = Query(..., description="订阅者 ID"),
    service: SubscriptionService = Depends(_service),
) -> dict:
    """用户启用中的 Feed 数量."""
    return {"owner_id": owner_id, "active": await service.active_feed_count(owner_id)}


@router.post("/refresh-all")
async def refresh_owner_feeds(
    owner_id: str = Query(..., description="订阅者 ID"),
    service: SubscriptionService = Depends(_service),
) -> dict:
    """立即刷新用户所有启用的 Feed（不检查缓存窗口）."""
    summary = await service.refresh_owner_feeds(owner_id)
    return summary.to_dict()


@router.get("/{feed_id}")
async def get_feed(
    feed_id: str,
    service: SubscriptionService = Depends(_service),
) -> dict:
    """获取 Feed 详情."""
    feed = await service.get_feed(feed_id)
    return _feed_to_dict(feed)


@router.delete("/{feed_id}")
async def delete_feed(
    feed_id: str,
    service: SubscriptionService = Depends(_service),
) -> dict:
    """删除订阅."""
    result = await service.delete_feed(feed_id)
    return {
        "id": result.feed_id,
        "articles_reassigned": result.articles_reassigned,
        "articles_deleted": result.articles_deleted,
    }


@router.post("/{feed_id}/toggle")
async def toggle_feed(
    feed_id: str,
    service: SubscriptionService = Depends(_service),
) -> dict:
    """切换启用状态."""
    feed = await service.toggle_active(feed_id)
    return {"id": feed.id, "is_active": feed.is_active}


@router.post("/{feed_id}/refresh")
async def refresh_feed(
    feed_id: str,
    refresher: FeedRefresher = Depends(get_refresher),
) -> dict:
    """立即刷新单个 Feed（不检查缓存窗口）."""
    result = await refresher.refresh_feed(feed_id)
    return {
        "id": result.feed_id,
        "title": result.metadata.title,
        "articles_created": result.created,
        "articles_merged": result.merged,
        "articles_skipped": result.skipped,
        "articles_errored": result.errors,
    }


@router.post("/{feed_id}/metadata")
async def refresh_feed_metadata(
    feed_id: str,
    service: SubscriptionService = Depends(_service),
) -> dict:
    """重新抓取 Feed 元数据."""
    feed = await service.refresh_metadata(feed_id)
    return _feed_to_dict(feed)

"""订阅管理服务."""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from feedletter.core.refresh import FeedRefresher, RefreshSummary
from feedletter.errors import (
    DuplicateFeedError,
    FeedFetchError,
    FeedletterError,
    FeedNotFoundError,
    FeedRefreshError,
    ValidationError,
)
from feedletter.models.article import Article, ArticleSource
from feedletter.models.feed import Feed
from feedletter.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass
class AddFeedResult:
    """订阅结果."""

    feed: Feed
    articles_created: int = 0
    articles_merged: int = 0
    articles_skipped: int = 0
    error: str | None = None


@dataclass
class DeleteFeedResult:
    """删除结果."""

    feed_id: str
    articles_reassigned: int = 0
    articles_deleted: int = 0


class SubscriptionService:
    """订阅源的增删改查."""

    def __init__(self, session: AsyncSession, refresher: FeedRefresher) -> None:
        self.session = session
        self.refresher = refresher

    async def get_feed(self, feed_id: str) -> Feed:
        feed = await self.session.get(Feed, feed_id)
        if feed is None:
            msg = f"RSS feed with ID {feed_id} not found"
            raise FeedNotFoundError(msg)
        return feed

    async def list_feeds(
        self,
        owner_id: str | None = None,
        include_inactive: bool = False,
    ) -> list[Feed]:
        """获取订阅列表，默认只返回启用的 Feed."""
        stmt = select(Feed)
        if owner_id is not None:
            stmt = stmt.where(Feed.owner_id == owner_id)
        if not include_inactive:
            stmt = stmt.where(Feed.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Feed.created_at.desc())  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def active_feed_count(self, owner_id: str) -> int:
        """用户启用中的 Feed 数量."""
        stmt = select(func.count(Feed.id)).where(
            Feed.owner_id == owner_id,
            Feed.is_active == True,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def add_feed(self, owner_id: str | None, url: str) -> AddFeedResult:
        """
        校验 URL 并创建订阅，随后立即抓取一次.

        首次抓取失败时仍保留订阅，错误信息放在结果中。
        """
        url = url.strip()
        if not url:
            msg = "url is required"
            raise ValidationError(msg)

        existing = await self.session.execute(
            select(Feed).where(Feed.owner_id == owner_id, Feed.url == url)
        )
        if existing.scalars().first() is not None:
            msg = f"Feed already subscribed: {url}"
            raise DuplicateFeedError(msg)

        if not await self.refresher.parser.validate_url(url):
            msg = "Invalid RSS feed URL or unable to fetch feed"
            raise ValidationError(msg)

        feed = Feed(owner_id=owner_id, url=url)
        self.session.add(feed)
        await self.session.commit()
        logger.info(f"新增订阅: {url} ({feed.id})")

        try:
            refreshed = await self.refresher.refresh_feed(feed.id)
        except FeedletterError as e:
            logger.warning(f"首次抓取失败 {url}: {e}")
            return AddFeedResult(feed=feed, error="Feed created but initial fetch failed")

        await self.session.refresh(feed)
        return AddFeedResult(
            feed=feed,
            articles_created=refreshed.created,
            articles_merged=refreshed.merged,
            articles_skipped=refreshed.skipped,
        )

    async def toggle_active(self, feed_id: str) -> Feed:
        """切换启用状态."""
        feed = await self.get_feed(feed_id)
        feed.is_active = not feed.is_active
        feed.updated_at = utcnow()
        await self.session.commit()
        return feed

    async def refresh_metadata(self, feed_id: str) -> Feed:
        """重新抓取并更新 Feed 元数据（不入库文章）."""
        feed = await self.get_feed(feed_id)
        try:
            parsed = await self.refresher.parser.fetch_and_parse(feed.url, feed_id)
        except FeedFetchError as e:
            msg = f"Failed to refresh feed metadata: {e}"
            raise FeedRefreshError(msg) from e

        metadata = parsed.metadata
        feed.title = metadata.title
        feed.description = metadata.description
        feed.link = metadata.link
        feed.image_url = metadata.image_url
        feed.language = metadata.language
        feed.updated_at = utcnow()
        await self.session.commit()
        return feed

    async def refresh_owner_feeds(self, owner_id: str) -> RefreshSummary:
        """刷新用户所有启用的 Feed."""
        feeds = await self.list_feeds(owner_id)
        return await self.refresher.refresh_feeds([feed.id for feed in feeds])

    async def delete_feed(self, feed_id: str) -> DeleteFeedResult:
        """
        删除订阅.

        - 从所有文章的来源中移除该 Feed
        - 以该 Feed 为主 Feed 的文章改挂到最早的剩余来源 Feed
        - 没有剩余来源的文章一并删除
        """
        feed = await self.get_feed(feed_id)
        result = DeleteFeedResult(feed_id=feed_id)

        await self.session.execute(
            delete(ArticleSource).where(ArticleSource.feed_id == feed_id)  # type: ignore[arg-type]
        )

        owned = await self.session.execute(
            select(Article).where(Article.feed_id == feed_id)
        )
        for article in owned.scalars().all():
            next_owner_stmt = (
                select(ArticleSource.feed_id)
                .where(ArticleSource.article_guid == article.guid)
                .order_by(ArticleSource.id)  # type: ignore[arg-type]
                .limit(1)
            )
            next_owner = (await self.session.execute(next_owner_stmt)).scalar_one_or_none()
            if next_owner:
                article.feed_id = next_owner
                result.articles_reassigned += 1
            else:
                await self.session.delete(article)
                result.articles_deleted += 1

        await self.session.delete(feed)
        await self.session.commit()

        logger.info(
            f"删除订阅 {feed_id}: 改挂文章={result.articles_reassigned}, "
            f"删除文章={result.articles_deleted}"
        )
        return result

"""Feed 新鲜度判断."""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from feedletter.models.feed import Feed
from feedletter.utils.timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CACHE_WINDOW = timedelta(hours=3)


class FreshnessClassifier:
    """
    判断哪些 Feed 需要刷新.

    新鲜度按 URL 计算：取所有同 URL Feed 中最近的 last_fetched，
    任何用户近期抓取过该 URL，其他订阅者都无需再抓。每次调用都查库，不做缓存。
    """

    def __init__(
        self,
        session: AsyncSession,
        cache_window: timedelta = DEFAULT_CACHE_WINDOW,
    ) -> None:
        self.session = session
        self.cache_window = cache_window

    async def most_recent_fetch(self, url: str) -> datetime | None:
        """同一 URL 所有订阅中最近一次抓取时间."""
        stmt = select(func.max(Feed.last_fetched)).where(Feed.url == url)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def is_stale(self, last_fetched: datetime | None, now: datetime) -> bool:
        """从未抓取或超出缓存窗口即为过期."""
        if last_fetched is None:
            return True
        return now - last_fetched > self.cache_window

    async def get_stale_feed_ids(
        self,
        feed_ids: Sequence[str],
        now: datetime | None = None,
    ) -> list[str]:
        """
        返回需要刷新的 Feed ID（保持输入顺序，重复 ID 只返回一次）.

        每个 ID 单独判断；两个 ID 指向同一 URL 时，各自按该 URL 的最近抓取时间判断。
        """
        current = to_naive_utc(now) if now else utcnow()
        stale: list[str] = []

        for feed_id in dict.fromkeys(feed_ids):
            feed = await self.session.get(Feed, feed_id)
            if feed is None:
                logger.warning(f"Feed 不存在，跳过新鲜度检查: {feed_id}")
                continue

            last_fetched = await self.most_recent_fetch(feed.url)
            if self.is_stale(last_fetched, current):
                stale.append(feed_id)

        return stale

"""Feed 刷新执行器."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedletter.core.merger import ArticleMerger, MergeResult, to_records
from feedletter.errors import (
    FeedFetchError,
    FeedInactiveError,
    FeedNotFoundError,
    FeedRefreshError,
    wrap_persistence,
)
from feedletter.fetcher.parser import FeedMetadata, FeedParser
from feedletter.models.feed import Feed
from feedletter.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass
class FeedRefreshResult:
    """单个 Feed 刷新结果."""

    feed_id: str
    metadata: FeedMetadata
    created: int = 0
    merged: int = 0
    skipped: int = 0
    errors: int = 0
    metadata_updated: bool = True


@dataclass
class FeedRefreshFailure:
    """刷新失败记录."""

    feed_id: str
    error: str
    failed_at: datetime = field(default_factory=utcnow)


@dataclass
class RefreshSummary:
    """批量刷新汇总."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    articles_created: int = 0
    articles_merged: int = 0
    articles_skipped: int = 0
    articles_errored: int = 0
    results: list[FeedRefreshResult] = field(default_factory=list)
    errors: list[FeedRefreshFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "articles_created": self.articles_created,
            "articles_merged": self.articles_merged,
            "articles_skipped": self.articles_skipped,
            "articles_errored": self.articles_errored,
            "errors": [
                {"feed_id": failure.feed_id, "error": failure.error}
                for failure in self.errors
            ],
        }


class FeedRefresher:
    """
    并发刷新多个 Feed.

    每个 Feed 使用独立的数据库会话；单个 Feed 的失败被记录在汇总中，
    不会中断其他 Feed，也不会在本轮重试（下次过期检查时自然重试）。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        parser: FeedParser,
    ) -> None:
        self.session_factory = session_factory
        self.parser = parser

    async def refresh_feed(self, feed_id: str) -> FeedRefreshResult:
        """抓取 → 解析 → 入库 → 更新时间戳，严格顺序执行."""
        async with self.session_factory() as session:
            feed = await session.get(Feed, feed_id)
            if feed is None:
                msg = f"Feed with ID {feed_id} not found"
                raise FeedNotFoundError(msg)
            if not feed.is_active:
                msg = f"Feed {feed_id} is not active"
                raise FeedInactiveError(msg)

            previous_fetch = feed.last_fetched

            try:
                parsed = await self.parser.fetch_and_parse(feed.url, feed_id)
            except FeedFetchError as e:
                msg = f"Failed to fetch feed: {e}"
                raise FeedRefreshError(msg) from e

            merger = ArticleMerger(session)
            merge: MergeResult = await merger.bulk_upsert(
                to_records(parsed.articles, feed_id)
            )

            metadata_updated = await self._mark_fetched(
                session, feed_id, previous_fetch, parsed.metadata
            )

        logger.info(
            f"Feed 刷新完成 {feed_id}: 新增={merge.created}, "
            f"合并={merge.merged}, 跳过={merge.skipped}, 错误={merge.errors}"
        )
        return FeedRefreshResult(
            feed_id=feed_id,
            metadata=parsed.metadata,
            created=merge.created,
            merged=merge.merged,
            skipped=merge.skipped,
            errors=merge.errors,
            metadata_updated=metadata_updated,
        )

    async def _mark_fetched(
        self,
        session: AsyncSession,
        feed_id: str,
        previous_fetch: datetime | None,
        metadata: FeedMetadata,
    ) -> bool:
        """
        更新 last_fetched，并在没有并发刷新抢先写入时同步元数据.

        以读取时的 last_fetched 作为条件；条件不成立说明其他刷新已写入，
        此时只更新时间戳。返回元数据是否被更新。
        """
        now = utcnow()

        async def _update() -> bool:
            if previous_fetch is None:
                unchanged = Feed.last_fetched.is_(None)  # type: ignore[union-attr]
            else:
                unchanged = Feed.last_fetched == previous_fetch

            result = await session.execute(
                update(Feed)
                .where(Feed.id == feed_id, unchanged)  # type: ignore[arg-type]
                .values(
                    last_fetched=now,
                    updated_at=now,
                    title=metadata.title,
                    description=metadata.description,
                    link=metadata.link,
                    image_url=metadata.image_url,
                    language=metadata.language,
                )
            )
            updated = result.rowcount == 1
            if not updated:
                await session.execute(
                    update(Feed)
                    .where(Feed.id == feed_id)  # type: ignore[arg-type]
                    .values(last_fetched=now, updated_at=now)
                )
            await session.commit()
            return updated

        return await wrap_persistence(_update, "update feed last fetched")

    async def refresh_feeds(self, feed_ids: Sequence[str]) -> RefreshSummary:
        """并发刷新，等待全部结束（成功或失败）后汇总.

        重复的 ID 只刷新一次，避免同一次抓取被记成多条来源。
        """
        feed_ids = list(dict.fromkeys(feed_ids))
        summary = RefreshSummary(total=len(feed_ids))
        if not feed_ids:
            return summary

        logger.info(f"开始刷新 {len(feed_ids)} 个 Feed")

        outcomes = await asyncio.gather(
            *(self.refresh_feed(feed_id) for feed_id in feed_ids),
            return_exceptions=True,
        )

        for feed_id, outcome in zip(feed_ids, outcomes, strict=True):
            if isinstance(outcome, FeedRefreshResult):
                summary.successful += 1
                summary.articles_created += outcome.created
                summary.articles_merged += outcome.merged
                summary.articles_skipped += outcome.skipped
                summary.articles_errored += outcome.errors
                summary.results.append(outcome)
                continue

            if not isinstance(outcome, Exception):
                # 取消等非业务异常照常向上传播
                raise outcome

            summary.failed += 1
            summary.errors.append(FeedRefreshFailure(feed_id=feed_id, error=str(outcome)))
            if isinstance(outcome, FeedFetchError):
                logger.warning(f"Feed 刷新失败 {feed_id}: {outcome}")
            else:
                logger.error(f"Feed 刷新异常 {feed_id}: {outcome!r}")

        logger.info(
            f"Feed 刷新结束: 成功={summary.successful}, 失败={summary.failed}"
        )
        return summary

"""Newsletter 生成流水线 - 新鲜度判断 + 刷新 + 窗口查询 + 内容生成."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedletter.config import Settings, get_settings
from feedletter.core.freshness import FreshnessClassifier
from feedletter.core.newsletters import NewsletterService
from feedletter.core.preferences import PreferencesService
from feedletter.core.refresh import FeedRefresher, RefreshSummary
from feedletter.core.retrieval import ArticleRetriever, WindowArticle
from feedletter.errors import FeedletterError, NoArticlesInRangeError, ValidationError
from feedletter.fetcher.parser import FeedParser
from feedletter.models.newsletter import Newsletter, UserSettings
from feedletter.llm.synthesizer import (
    ArticleDigest,
    GeneratedNewsletter,
    NewsletterSynthesizer,
    make_excerpt,
)
from feedletter.utils.timeutil import to_naive_utc

logger = logging.getLogger(__name__)


class EventType:
    """流式事件类型，顺序固定.

    refreshing(0-1) → analyzing → metadata → partial(0-n) → complete | error
    """

    REFRESHING = "refreshing"
    ANALYZING = "analyzing"
    METADATA = "metadata"
    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"


class GenerationRequest(BaseModel):
    """Newsletter 生成请求."""

    feed_ids: list[str]
    start_date: datetime
    end_date: datetime
    user_input: str | None = None
    owner_id: str | None = None
    save: bool = False


def validate_request(request: GenerationRequest) -> None:
    """参数校验，不产生副作用."""
    if not request.feed_ids:
        msg = "feed_ids is required and must be a non-empty array"
        raise ValidationError(msg)
    if to_naive_utc(request.start_date) > to_naive_utc(request.end_date):
        msg = "start_date must not be after end_date"
        raise ValidationError(msg)
    if request.save and not request.owner_id:
        msg = "owner_id is required when save is requested"
        raise ValidationError(msg)


def to_digest(article: WindowArticle) -> ArticleDigest:
    """窗口文章转为 LLM 输入."""
    return ArticleDigest(
        title=article.title,
        source_name=article.feed_title or article.feed_url or "Unknown source",
        publish_date=article.pub_date,
        excerpt=make_excerpt(article.summary, article.content),
        link=article.link,
    )


class NewsletterPipeline:
    """
    组合各个环节.

    判断过期 → 只刷新过期的 Feed → 查询时间窗口 → 结果为空则报错。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        parser: FeedParser,
        settings: Settings | None = None,
        synthesizer: NewsletterSynthesizer | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.refresher = FeedRefresher(session_factory, parser)
        self.synthesizer = synthesizer

    @property
    def cache_window(self) -> timedelta:
        return timedelta(minutes=self.settings.cache_window_minutes)

    async def get_stale_feed_ids(self, feed_ids: Sequence[str]) -> list[str]:
        """找出需要刷新的 Feed."""
        async with self.session_factory() as session:
            classifier = FreshnessClassifier(session, self.cache_window)
            return await classifier.get_stale_feed_ids(feed_ids)

    async def refresh(
        self,
        stale_ids: Sequence[str],
        total: int,
    ) -> RefreshSummary | None:
        """刷新过期 Feed，整体受超时上限约束；超时则放弃本轮，已入库的文章照常可用."""
        if not stale_ids:
            logger.info(f"全部 {total} 个 Feed 均在缓存窗口内，跳过刷新")
            return None

        logger.info(f"刷新 {len(stale_ids)} 个过期 Feed（共 {total} 个）")
        try:
            summary = await asyncio.wait_for(
                self.refresher.refresh_feeds(stale_ids),
                timeout=self.settings.refresh_batch_timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                f"Feed 刷新超过 {self.settings.refresh_batch_timeout_seconds}s，"
                "放弃本轮刷新"
            )
            return None

        logger.info(f"Feed 刷新完成: 成功={summary.successful}, 失败={summary.failed}")
        return summary

    async def refresh_stale(self, feed_ids: Sequence[str]) -> RefreshSummary | None:
        """判断并刷新过期 Feed."""
        stale_ids = await self.get_stale_feed_ids(feed_ids)
        return await self.refresh(stale_ids, total=len(feed_ids))

    async def retrieve(
        self,
        feed_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[WindowArticle]:
        """查询窗口内文章，结果为空时抛出 NoArticlesInRangeError."""
        async with self.session_factory() as session:
            retriever = ArticleRetriever(session)
            articles = await retriever.get_articles_in_window(
                feed_ids, start_date, end_date, limit=self.settings.article_limit
            )

        if not articles:
            msg = "No articles found for the selected feeds and date range"
            raise NoArticlesInRangeError(msg)
        return articles

    async def prepare_articles(
        self,
        feed_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[WindowArticle]:
        """刷新过期 Feed 并返回窗口内文章."""
        feed_ids = list(dict.fromkeys(feed_ids))
        await self.refresh_stale(feed_ids)
        return await self.retrieve(feed_ids, start_date, end_date)

    async def load_settings(self, owner_id: str | None) -> UserSettings | None:
        """读取用户偏好；未指定用户时为 None."""
        if not owner_id:
            return None
        async with self.session_factory() as session:
            return await PreferencesService(session).get(owner_id)

    async def save_newsletter(
        self,
        request: GenerationRequest,
        newsletter: GeneratedNewsletter,
    ) -> Newsletter:
        async with self.session_factory() as session:
            return await NewsletterService(session).save(
                request.owner_id or "",
                newsletter,
                request.feed_ids,
                request.start_date,
                request.end_date,
                request.user_input,
            )

    async def stream_events(
        self,
        request: GenerationRequest,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        以事件流形式执行完整生成流程.

        以 complete 或 error 事件结束，流程中的异常都转为 error 事件。
        """
        try:
            validate_request(request)
            feed_ids = list(dict.fromkeys(request.feed_ids))

            stale_ids = await self.get_stale_feed_ids(feed_ids)
            if stale_ids:
                yield {"type": EventType.REFRESHING, "feed_count": len(stale_ids)}
            await self.refresh(stale_ids, total=len(feed_ids))

            yield {"type": EventType.ANALYZING, "feed_count": len(feed_ids)}
            articles = await self.retrieve(
                feed_ids, request.start_date, request.end_date
            )

            yield {"type": EventType.METADATA, "articles_analyzed": len(articles)}

            if self.synthesizer is None:
                msg = "未配置内容生成服务"
                raise FeedletterError(msg)

            settings = await self.load_settings(request.owner_id)
            digests = [to_digest(article) for article in articles]
            async for item in self.synthesizer.stream(
                digests,
                request.start_date,
                request.end_date,
                request.user_input,
                settings,
            ):
                if isinstance(item, GeneratedNewsletter):
                    event = {"type": EventType.COMPLETE, "data": item.model_dump()}
                    if request.save:
                        saved = await self.save_newsletter(request, item)
                        event["newsletter_id"] = saved.id
                    yield event
                else:
                    yield {"type": EventType.PARTIAL, "data": item}

        except FeedletterError as e:
            logger.warning(f"Newsletter 生成失败 ({e.kind}): {e}")
            yield {"type": EventType.ERROR, "error": str(e), "kind": e.kind}
        except Exception as e:
            logger.exception("Newsletter 生成异常")
            yield {
                "type": EventType.ERROR,
                "error": str(e) or type(e).__name__,
                "kind": "internal",
            }

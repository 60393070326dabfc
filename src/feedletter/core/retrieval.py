"""时间窗口文章查询."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.errors import ArticleNotFoundError, wrap_persistence
from feedletter.models.article import Article, ArticleSource
from feedletter.models.feed import Feed
from feedletter.utils.timeutil import to_naive_utc

DEFAULT_ARTICLE_LIMIT = 100


class WindowArticle(BaseModel):
    """带来源信息和重要度的文章."""

    id: str
    guid: str
    feed_id: str
    feed_title: str | None = None
    feed_url: str | None = None
    title: str
    link: str
    content: str | None = None
    summary: str | None = None
    pub_date: datetime
    author: str | None = None
    categories: list[str] = []
    image_url: str | None = None
    source_count: int = 0


def _source_count_column() -> Any:
    """来源记录条数（含同一 Feed 的重复追加）."""
    return (
        select(func.count(ArticleSource.id))
        .where(ArticleSource.article_guid == Article.guid)
        .correlate(Article)
        .scalar_subquery()
        .label("source_count")
    )


def _build(
    article: Article,
    feed_title: str | None,
    feed_url: str | None,
    count: int,
) -> WindowArticle:
    return WindowArticle(
        id=article.id,
        guid=article.guid,
        feed_id=article.feed_id,
        feed_title=feed_title,
        feed_url=feed_url,
        title=article.title,
        link=article.link,
        content=article.content,
        summary=article.summary,
        pub_date=article.pub_date,
        author=article.author,
        categories=list(article.categories or []),
        image_url=article.image_url,
        source_count=count or 0,
    )


class ArticleRetriever:
    """文章查询服务."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _base_query(self) -> Any:
        return select(Article, Feed.title, Feed.url, _source_count_column()).outerjoin(
            Feed, Article.feed_id == Feed.id
        )

    def _matches_feeds(self, feed_ids: Sequence[str]) -> Any:
        """主 Feed 命中，或任一来源 Feed 命中."""
        sighted = select(ArticleSource.article_guid).where(
            ArticleSource.feed_id.in_(feed_ids)  # type: ignore[attr-defined]
        )
        return or_(
            Article.feed_id.in_(feed_ids),  # type: ignore[attr-defined]
            Article.guid.in_(sighted),  # type: ignore[attr-defined]
        )

    async def _fetch(self, stmt: Any, operation: str) -> list[WindowArticle]:
        async def _run() -> list[WindowArticle]:
            result = await self.session.execute(stmt)
            return [_build(*row) for row in result.all()]

        return await wrap_persistence(_run, operation)

    async def get_articles_in_window(
        self,
        feed_ids: Sequence[str],
        start: datetime,
        end: datetime,
        limit: int = DEFAULT_ARTICLE_LIMIT,
    ) -> list[WindowArticle]:
        """
        获取时间窗口内的文章.

        pub_date 落在 [start, end]（两端闭区间），按发布时间倒序，
        最多 limit 条。结果可以为空，是否报错由调用方决定。
        """
        if not feed_ids or limit <= 0:
            return []

        stmt = (
            self._base_query()
            .where(self._matches_feeds(feed_ids))
            .where(
                Article.pub_date >= to_naive_utc(start),
                Article.pub_date <= to_naive_utc(end),
            )
            .order_by(Article.pub_date.desc(), Article.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return await self._fetch(stmt, "fetch articles by date range")

    async def get_articles_by_feed(
        self,
        feed_id: str,
        limit: int = DEFAULT_ARTICLE_LIMIT,
    ) -> list[WindowArticle]:
        """获取某个 Feed 的文章（含其他 Feed 首发、该 Feed 也出现过的文章）."""
        stmt = (
            self._base_query()
            .where(self._matches_feeds([feed_id]))
            .order_by(Article.pub_date.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return await self._fetch(stmt, "fetch articles by feed ID")

    async def get_recent_articles(
        self,
        owner_id: str,
        limit: int = 50,
    ) -> list[WindowArticle]:
        """获取用户所有启用 Feed 的最新文章."""
        feed_stmt = select(Feed.id).where(
            Feed.owner_id == owner_id,
            Feed.is_active == True,  # noqa: E712
        )
        feed_ids = list((await self.session.execute(feed_stmt)).scalars().all())
        if not feed_ids:
            return []

        stmt = (
            self._base_query()
            .where(self._matches_feeds(feed_ids))
            .order_by(Article.pub_date.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return await self._fetch(stmt, "fetch recent articles")

    async def get_article(self, article_id: str) -> WindowArticle:
        """按 ID 获取单篇文章."""
        stmt = self._base_query().where(Article.id == article_id)
        articles = await self._fetch(stmt, "fetch article by ID")
        if not articles:
            msg = f"Article with ID {article_id} not found"
            raise ArticleNotFoundError(msg)
        return articles[0]

    async def get_source_feed_ids(self, guid: str) -> list[str]:
        """文章的来源 Feed 列表（按追加顺序，可重复）."""
        stmt = (
            select(ArticleSource.feed_id)
            .where(ArticleSource.article_guid == guid)
            .order_by(ArticleSource.id)  # type: ignore[arg-type]
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

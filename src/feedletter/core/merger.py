"""文章去重合并."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.errors import is_conflict_error
from feedletter.fetcher.parser import ArticleData
from feedletter.models.article import Article, ArticleSource
from feedletter.utils.timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class UpsertOutcome:
    """单条写入结果."""

    CREATED = "created"
    MERGED = "merged"  # guid 已存在，仅追加来源
    SKIPPED = "skipped"  # 并发插入冲突
    ERRORED = "errored"


class ArticleRecord(ArticleData):
    """待写入的文章，带产出它的 Feed."""

    feed_id: str


@dataclass
class MergeResult:
    """批量写入统计."""

    created: int = 0
    merged: int = 0
    skipped: int = 0
    errors: int = 0

    def add(self, outcome: str) -> None:
        if outcome == UpsertOutcome.CREATED:
            self.created += 1
        elif outcome == UpsertOutcome.MERGED:
            self.merged += 1
        elif outcome == UpsertOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1


def to_records(articles: Iterable[ArticleData], feed_id: str) -> list[ArticleRecord]:
    """解析结果转为待写入记录."""
    return [
        ArticleRecord(**article.model_dump(), feed_id=feed_id) for article in articles
    ]


class ArticleMerger:
    """
    按 guid 插入或追加来源.

    - guid 不存在：创建文章，来源为 [feed_id]
    - guid 已存在：只追加一条来源记录，不覆盖内容（先写者为准）

    两步都是单条原子语句（条件插入 + 追加插入），没有先读后写，
    并发批次写同一个 guid 时不会丢失追加。
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _insert_ignore_conflict(self, values: dict[str, Any]) -> Any:
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(Article).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(Article).values(**values)
        else:
            msg = f"不支持的数据库方言: {dialect}"
            raise RuntimeError(msg)
        return stmt.on_conflict_do_nothing(index_elements=["guid"])

    async def upsert_article(self, record: ArticleRecord) -> str:
        """写入单篇文章，返回 UpsertOutcome."""
        now = utcnow()
        values = {
            "id": uuid4().hex,
            "guid": record.guid,
            "feed_id": record.feed_id,
            "title": record.title,
            "link": record.link,
            "content": record.content,
            "summary": record.summary,
            "pub_date": to_naive_utc(record.pub_date),
            "author": record.author,
            "categories": list(record.categories),
            "image_url": record.image_url,
            "created_at": now,
        }

        try:
            result = await self.session.execute(self._insert_ignore_conflict(values))
            created = result.rowcount == 1
            await self.session.execute(
                insert(ArticleSource).values(
                    article_guid=record.guid,
                    feed_id=record.feed_id,
                    seen_at=now,
                )
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            if is_conflict_error(e):
                logger.info(f"重复文章，跳过: {record.guid}")
                return UpsertOutcome.SKIPPED
            logger.exception(f"写入文章失败: {record.guid}")
            return UpsertOutcome.ERRORED

        return UpsertOutcome.CREATED if created else UpsertOutcome.MERGED

    async def bulk_upsert(self, records: Iterable[ArticleRecord]) -> MergeResult:
        """逐条写入，单条失败不影响其他记录."""
        result = MergeResult()
        for record in records:
            result.add(await self.upsert_article(record))
        return result

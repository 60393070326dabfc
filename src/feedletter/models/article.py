"""Article 文章模型."""

from uuid import uuid4

from pydantic import NaiveDatetime
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from feedletter.utils.timeutil import utcnow


class Article(SQLModel, table=True):
    """去重后的规范文章，guid 全局唯一."""

    __tablename__ = "articles"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    guid: str = Field(unique=True, index=True, description="文章身份键")
    feed_id: str = Field(index=True, description="首次产出该文章的 Feed")
    title: str = Field(description="标题")
    link: str = Field(default="", description="原文链接")
    content: str | None = Field(default=None, description="完整内容")
    summary: str | None = Field(default=None, description="摘要")
    pub_date: NaiveDatetime = Field(
        index=True, sa_type=DateTime, description="发布时间"
    )
    author: str | None = Field(default=None, description="作者")
    categories: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    image_url: str | None = Field(default=None, description="封面图")
    created_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)


class ArticleSource(SQLModel, table=True):
    """文章来源记录.

    每次某个 Feed 产出该 guid 就追加一行，不去重；
    行数即来源数（重要度）。
    """

    __tablename__ = "article_sources"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    article_guid: str = Field(index=True, description="关联文章 guid")
    feed_id: str = Field(index=True, description="产出该条目的 Feed")
    seen_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)

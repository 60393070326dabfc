"""Feed 订阅源模型."""

from uuid import uuid4

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from feedletter.utils.timeutil import utcnow


class Feed(SQLModel, table=True):
    """RSS 订阅源.

    多个用户可以订阅同一个 URL，每个订阅是一条独立记录；
    新鲜度按 URL 计算，一个用户的刷新对所有订阅者生效。
    """

    __tablename__ = "feeds"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    owner_id: str | None = Field(default=None, index=True, description="订阅者 ID")
    url: str = Field(index=True, description="Feed URL（不唯一）")
    title: str | None = Field(default=None, description="Feed 标题")
    description: str | None = Field(default=None, description="Feed 描述")
    link: str | None = Field(default=None, description="网站 URL")
    image_url: str | None = Field(default=None, description="图标 URL")
    language: str | None = Field(default=None, description="语言")
    last_fetched: NaiveDatetime | None = Field(
        default=None,
        index=True,
        sa_type=DateTime,
        description="最近一次成功抓取时间",
    )
    is_active: bool = Field(default=True, description="是否启用")
    created_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)

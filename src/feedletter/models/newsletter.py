"""Newsletter 历史和用户偏好模型."""

from uuid import uuid4

from pydantic import NaiveDatetime
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from feedletter.utils.timeutil import utcnow


class Newsletter(SQLModel, table=True):
    """已保存的 Newsletter."""

    __tablename__ = "newsletters"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    owner_id: str = Field(index=True, description="所属用户")
    suggested_titles: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    suggested_subject_lines: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    body: str = Field(description="正文（Markdown）")
    top_announcements: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    additional_info: str | None = Field(default=None, description="补充信息")
    start_date: NaiveDatetime = Field(sa_type=DateTime, description="文章窗口起点")
    end_date: NaiveDatetime = Field(sa_type=DateTime, description="文章窗口终点")
    user_input: str | None = Field(default=None, description="生成时的用户指令")
    feeds_used: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: NaiveDatetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )


class UserSettings(SQLModel, table=True):
    """用户的 Newsletter 偏好，生成时写入提示词."""

    __tablename__ = "user_settings"  # type: ignore[assignment]

    owner_id: str = Field(primary_key=True)

    # 基本设置
    newsletter_name: str | None = None
    description: str | None = None
    target_audience: str | None = None
    default_tone: str | None = None

    # 品牌
    brand_voice: str | None = None
    company_name: str | None = None
    industry: str | None = None

    # 附加信息
    disclaimer_text: str | None = None
    default_tags: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    custom_footer: str | None = None
    sender_name: str | None = None
    sender_email: str | None = None

    created_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)

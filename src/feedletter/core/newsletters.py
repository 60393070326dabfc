"""Newsletter 历史."""

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from feedletter.errors import NewsletterNotFoundError, ValidationError, wrap_persistence
from feedletter.llm.synthesizer import GeneratedNewsletter
from feedletter.models.newsletter import Newsletter
from feedletter.utils.timeutil import to_naive_utc

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class NewsletterService:
    """保存、查询和删除已生成的 Newsletter."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(
        self,
        owner_id: str,
        newsletter: GeneratedNewsletter,
        feed_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        user_input: str | None = None,
    ) -> Newsletter:
        """保存一次生成结果."""
        if not owner_id:
            msg = "owner_id is required to save a newsletter"
            raise ValidationError(msg)

        record = Newsletter(
            owner_id=owner_id,
            suggested_titles=list(newsletter.suggested_titles),
            suggested_subject_lines=list(newsletter.suggested_subject_lines),
            body=newsletter.body,
            top_announcements=list(newsletter.top_announcements),
            additional_info=newsletter.additional_info,
            start_date=to_naive_utc(start_date),
            end_date=to_naive_utc(end_date),
            user_input=user_input,
            feeds_used=list(dict.fromkeys(feed_ids)),
        )

        async def _save() -> Newsletter:
            self.session.add(record)
            await self.session.commit()
            return record

        saved = await wrap_persistence(_save, "create newsletter")
        logger.info(f"已保存 Newsletter {saved.id} (用户 {owner_id})")
        return saved

    async def get(self, newsletter_id: str) -> Newsletter:
        newsletter = await self.session.get(Newsletter, newsletter_id)
        if newsletter is None:
            msg = f"Newsletter with ID {newsletter_id} not found"
            raise NewsletterNotFoundError(msg)
        return newsletter

    async def list_by_owner(
        self,
        owner_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[Newsletter]:
        """最新的在前."""
        stmt = (
            select(Newsletter)
            .where(Newsletter.owner_id == owner_id)
            .order_by(Newsletter.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_date_range(
        self,
        owner_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[Newsletter]:
        """按创建时间筛选，两端都包含."""
        stmt = (
            select(Newsletter)
            .where(
                Newsletter.owner_id == owner_id,
                Newsletter.created_at >= to_naive_utc(start_date),
                Newsletter.created_at <= to_naive_utc(end_date),
            )
            .order_by(Newsletter.created_at.desc())  # type: ignore[attr-defined]
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def latest(self, owner_id: str) -> Newsletter | None:
        newsletters = await self.list_by_owner(owner_id, limit=1)
        return newsletters[0] if newsletters else None

    async def count(self, owner_id: str) -> int:
        stmt = select(func.count(Newsletter.id)).where(Newsletter.owner_id == owner_id)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def delete(self, newsletter_id: str, owner_id: str | None = None) -> None:
        """删除；指定 owner_id 时只能删除自己的 Newsletter."""
        newsletter = await self.get(newsletter_id)
        if owner_id is not None and newsletter.owner_id != owner_id:
            msg = f"Newsletter with ID {newsletter_id} not found"
            raise NewsletterNotFoundError(msg)

        async def _delete() -> None:
            await self.session.delete(newsletter)
            await self.session.commit()

        await wrap_persistence(_delete, "delete newsletter")
        logger.info(f"已删除 Newsletter {newsletter_id}")

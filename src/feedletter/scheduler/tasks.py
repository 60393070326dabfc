"""定时任务定义."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from feedletter.config import Settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def refresh_task(settings: Settings) -> None:
    """刷新任务：后台刷新所有启用中且已过期的 Feed."""
    from feedletter.api.deps import get_parser
    from feedletter.core.pipeline import NewsletterPipeline
    from feedletter.models.database import async_session_maker
    from feedletter.models.feed import Feed
    from sqlmodel import select

    logger.info("开始后台刷新任务...")

    try:
        session_factory = async_session_maker()
        async with session_factory() as session:
            result = await session.execute(
                select(Feed.id).where(Feed.is_active == True)  # noqa: E712
            )
            feed_ids = list(result.scalars().all())

        if not feed_ids:
            logger.info("没有启用中的 Feed")
            return

        pipeline = NewsletterPipeline(session_factory, get_parser(), settings=settings)
        summary = await pipeline.refresh_stale(feed_ids)
        if summary:
            logger.info(
                f"后台刷新完成: 成功={summary.successful}, 失败={summary.failed}, "
                f"新增文章={summary.articles_created}, 合并={summary.articles_merged}"
            )

    except Exception as e:
        logger.exception(f"后台刷新任务失败: {e}")


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    """创建并启动定时任务调度器."""
    global _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        refresh_task,
        "interval",
        minutes=settings.refresh_interval_minutes,
        args=[settings],
        id="refresh_task",
        name="过期 Feed 刷新",
        replace_existing=True,
    )

    # 启动时立即执行一次
    _scheduler.add_job(
        refresh_task,
        "date",  # 一次性任务
        args=[settings],
        id="refresh_task_initial",
        name="初始刷新",
    )

    _scheduler.start()
    logger.info(
        f"定时任务调度器已启动，刷新间隔: {settings.refresh_interval_minutes} 分钟"
    )

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None

"""定时任务模块."""

from feedletter.scheduler.tasks import create_scheduler, refresh_task, shutdown_scheduler

__all__ = ["create_scheduler", "refresh_task", "shutdown_scheduler"]

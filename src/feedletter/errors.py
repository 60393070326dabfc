"""错误类型定义."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

T = TypeVar("T")


class FeedletterError(Exception):
    """所有业务错误的基类."""

    kind = "internal"
    status_code = 500


class ValidationError(FeedletterError):
    """请求参数缺失或格式错误，未产生任何副作用."""

    kind = "validation"
    status_code = 400


class DuplicateFeedError(ValidationError):
    """同一用户重复订阅同一 URL."""

    status_code = 409


class FeedNotFoundError(FeedletterError):
    """Feed 不存在."""

    kind = "not_found"
    status_code = 404


class ArticleNotFoundError(FeedletterError):
    """文章不存在."""

    kind = "not_found"
    status_code = 404


class NewsletterNotFoundError(FeedletterError):
    """Newsletter 不存在或不属于该用户."""

    kind = "not_found"
    status_code = 404


class FeedFetchError(FeedletterError):
    """RSS 文档下载或解析失败."""

    kind = "fetch"
    status_code = 502


class FeedInactiveError(FeedFetchError):
    """Feed 已停用，拒绝刷新."""

    status_code = 409


class FeedRefreshError(FeedFetchError):
    """单个 Feed 刷新失败（包装底层原因）."""


class PersistenceError(FeedletterError):
    """数据库操作失败（唯一约束冲突除外）."""

    kind = "persistence"


class NoArticlesInRangeError(FeedletterError):
    """所选 Feed 在时间范围内没有任何文章."""

    kind = "empty_result"
    status_code = 404


class AuthorizationError(FeedletterError):
    """套餐/权限不足."""

    kind = "authorization"
    status_code = 403


def is_conflict_error(error: BaseException) -> bool:
    """是否为唯一约束冲突."""
    return isinstance(error, IntegrityError)


async def wrap_persistence(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
) -> T:
    """执行数据库操作，把非冲突错误包装为 PersistenceError."""
    try:
        return await operation()
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        msg = f"Failed to {operation_name}: {e}"
        raise PersistenceError(msg) from e


class SynthesisError(FeedletterError):
    """LLM 生成结果无法解析."""

    kind = "synthesis"
    status_code = 502

"""时间工具.

数据库统一存储无时区的 UTC 时间。
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """当前 UTC 时间（naive）."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """转换为 naive UTC；naive 输入视为已是 UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)

"""RSS/Atom 文档抓取与规范化."""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any

import feedparser
import httpx
from dateutil.parser import parse as parse_date
from pydantic import BaseModel, Field

from feedletter.errors import FeedFetchError
from feedletter.utils.html_parser import html_to_text
from feedletter.utils.timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; RSS Newsletter Bot/1.0)"
UNTITLED_ARTICLE = "Untitled"


class FeedMetadata(BaseModel):
    """Feed 级别元数据."""

    title: str
    description: str | None = None
    link: str | None = None
    image_url: str | None = None
    language: str | None = None


class ArticleData(BaseModel):
    """从 RSS 条目中提取的规范化文章."""

    guid: str
    title: str
    link: str
    content: str | None = None
    summary: str | None = None
    pub_date: datetime
    author: str | None = None
    categories: list[str] = Field(default_factory=list)
    image_url: str | None = None


class ParsedFeed(BaseModel):
    """一次抓取解析的结果."""

    metadata: FeedMetadata
    articles: list[ArticleData]
    item_count: int


def _first_text(*values: Any) -> str | None:
    """按顺序返回第一个非空字符串."""
    for value in values:
        if isinstance(value, str) and value.strip():
            return value
    return None


def _struct_to_datetime(value: time.struct_time | None) -> datetime | None:
    if not value:
        return None
    try:
        # feedparser 已把 *_parsed 字段归一化为 UTC
        return datetime(*value[:6])
    except (TypeError, ValueError):
        return None


def _parse_legacy_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return to_naive_utc(parse_date(value))
    except (ValueError, OverflowError):
        return None


def derive_guid(entry: dict[str, Any], feed_id: str) -> str:
    """文章身份键：原生 guid → link → "{feed_id}-{title}"."""
    guid = _first_text(entry.get("id"), entry.get("guid"), entry.get("link"))
    if guid:
        return guid
    title = _first_text(entry.get("title")) or UNTITLED_ARTICLE
    return f"{feed_id}-{title}"


def derive_pub_date(entry: dict[str, Any]) -> datetime:
    """发布时间：结构化日期 → 旧式日期字符串 → 当前时间."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = _struct_to_datetime(entry.get(key))
        if parsed:
            return parsed

    for key in ("published", "updated"):
        legacy = _parse_legacy_date(entry.get(key))
        if legacy:
            return legacy

    return utcnow()


def _encoded_content(entry: dict[str, Any]) -> str | None:
    """content:encoded / Atom content."""
    contents = entry.get("content") or []
    for item in contents:
        value = _first_text(item.get("value"))
        if value:
            return value
    return None


def _image_from_enclosure(entry: dict[str, Any]) -> str | None:
    enclosures = entry.get("enclosures") or []
    if not enclosures:
        return None
    enclosure = enclosures[0]
    href = enclosure.get("href") or enclosure.get("url")
    mime_type = enclosure.get("type") or ""
    if href and mime_type.startswith("image/"):
        return href
    return None


def extract_feed_metadata(parsed: feedparser.FeedParserDict) -> FeedMetadata:
    """提取 Feed 级别元数据."""
    feed = parsed.get("feed", {})
    image = feed.get("image") or {}
    return FeedMetadata(
        title=_first_text(feed.get("title")) or "Untitled Feed",
        description=_first_text(feed.get("subtitle"), feed.get("description")),
        link=_first_text(feed.get("link")),
        image_url=_first_text(image.get("href"), image.get("url")),
        language=_first_text(feed.get("language")),
    )


def extract_articles(
    parsed: feedparser.FeedParserDict,
    feed_id: str,
) -> list[ArticleData]:
    """
    提取并规范化文章列表.

    每个字段按固定顺序尝试多个候选来源，顺序决定输出，不可调整：
    - content: content:encoded → description → summary
    - summary: 内容纯文本片段 → description → summary
    - author: creator → author
    """
    articles: list[ArticleData] = []

    for entry in parsed.get("entries", []):
        description = _first_text(entry.get("description"))
        summary_field = _first_text(entry.get("summary"))

        content = _first_text(_encoded_content(entry), description, summary_field)

        snippet = html_to_text(content) if content else None
        summary = _first_text(snippet, description, summary_field)

        categories = [
            tag.get("term")
            for tag in entry.get("tags") or []
            if isinstance(tag.get("term"), str) and tag.get("term")
        ]

        articles.append(
            ArticleData(
                guid=derive_guid(entry, feed_id),
                title=_first_text(entry.get("title")) or UNTITLED_ARTICLE,
                link=_first_text(entry.get("link")) or "",
                content=content,
                summary=summary,
                pub_date=derive_pub_date(entry),
                author=_first_text(entry.get("creator"), entry.get("author")),
                categories=categories,
                image_url=_image_from_enclosure(entry),
            )
        )

    return articles


def parse_document(document: bytes | str) -> feedparser.FeedParserDict:
    """解析 RSS/Atom 文档，无法识别为 Feed 时抛出 ValueError."""
    parsed = feedparser.parse(document)
    if not parsed.get("version"):
        cause = parsed.get("bozo_exception")
        msg = str(cause) if cause else "文档不是有效的 RSS/Atom Feed"
        raise ValueError(msg)
    return parsed


class FeedParser:
    """抓取并解析 RSS 文档."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    async def __aenter__(self) -> "FeedParser":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _download(self, url: str) -> bytes:
        response = await self._client.get(url)
        response.raise_for_status()
        return response.content

    async def parse_url(self, url: str) -> feedparser.FeedParserDict:
        """下载并解析，整体受超时限制."""
        try:
            document = await asyncio.wait_for(self._download(url), self.timeout)
            return parse_document(document)
        except TimeoutError as e:
            msg = f"Failed to fetch or parse RSS feed: 请求超时 ({self.timeout}s)"
            raise FeedFetchError(msg) from e
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Failed to fetch or parse RSS feed: {e}"
            raise FeedFetchError(msg) from e

    async def validate_url(self, url: str) -> bool:
        """URL 能在超时内抓取并解析即为有效，失败返回 False 不抛出."""
        try:
            await self.parse_url(url)
        except FeedFetchError as e:
            logger.warning(f"无效的 RSS 地址 {url}: {e}")
            return False
        return True

    async def fetch_and_parse(self, url: str, feed_id: str) -> ParsedFeed:
        """抓取并返回元数据和文章."""
        parsed = await self.parse_url(url)
        articles = extract_articles(parsed, feed_id)
        logger.info(f"解析完成: {url} ({len(articles)} 条)")
        return ParsedFeed(
            metadata=extract_feed_metadata(parsed),
            articles=articles,
            item_count=len(parsed.get("entries", [])),
        )

"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from feedletter.api.deps import get_parser, get_session_factory, get_synthesizer
from feedletter.fetcher.parser import FeedParser
from feedletter.llm.base import LLMConfig, LLMProvider, Message
from feedletter.llm.synthesizer import NewsletterSynthesizer
from feedletter.main import app
from feedletter.models.database import (
    create_engine_for,
    create_session_factory,
    create_tables,
    get_session,
)
from feedletter.models.feed import Feed

RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
<channel>
<title>{title}</title>
<link>https://example.com</link>
<description>Example feed</description>
<language>en</language>
<image><url>https://example.com/logo.png</url><title>{title}</title><link>https://example.com</link></image>
{items}
</channel>
</rss>"""

NEWSLETTER_JSON = (
    '{"suggested_titles": ["T1", "T2", "T3", "T4", "T5"], '
    '"suggested_subject_lines": ["S1", "S2", "S3", "S4", "S5"], '
    '"body": "## Weekly\\n\\nHello readers.", '
    '"top_announcements": ["A1", "A2", "A3", "A4", "A5"], '
    '"additional_info": "More soon."}'
)


def build_rss(title: str, items: list[dict[str, str]]) -> str:
    """生成 RSS 2.0 文档，item 的键即元素名."""
    rendered = []
    for item in items:
        parts = []
        for tag, value in item.items():
            if tag == "enclosure":
                parts.append(f'<enclosure url="{value}" type="image/jpeg" length="0"/>')
            elif tag == "content:encoded":
                parts.append(f"<content:encoded><![CDATA[{value}]]></content:encoded>")
            else:
                parts.append(f"<{tag}>{value}</{tag}>")
        rendered.append("<item>" + "".join(parts) + "</item>")
    return RSS_TEMPLATE.format(title=title, items="\n".join(rendered))


class FakeProvider(LLMProvider):
    """按固定片段流式输出的 LLM."""

    def __init__(self, text: str = NEWSLETTER_JSON, chunk_size: int = 40) -> None:
        super().__init__(LLMConfig(model="fake"))
        self.text = text
        self.chunk_size = chunk_size
        self.closed = False
        self.received: list[list[Message]] = []

    async def chat(self, messages: list[Message]) -> str:
        return self.text

    async def chat_stream(self, messages: list[Message]) -> AsyncIterator[str]:
        self.received.append(messages)
        for start in range(0, len(self.text), self.chunk_size):
            yield self.text[start : start + self.chunk_size]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_rss() -> Callable[[str, list[dict[str, str]]], str]:
    return build_rss


@pytest.fixture
def feed_documents() -> dict[str, str]:
    """URL → RSS 文档；未登记的 URL 返回 404."""
    return {}


@pytest.fixture
def requested_urls() -> list[str]:
    """记录模拟服务器收到的请求."""
    return []


@pytest_asyncio.fixture
async def parser(
    feed_documents: dict[str, str],
    requested_urls: list[str],
) -> AsyncGenerator[FeedParser, None]:
    """基于 MockTransport 的 FeedParser，不访问网络."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested_urls.append(url)
        document = feed_documents.get(url)
        if document is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=document)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    feed_parser = FeedParser(timeout=5, client=client)
    yield feed_parser
    await feed_parser.close()


@pytest_asyncio.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """创建测试用的内存数据库会话."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """文件数据库的会话工厂，每个会话独立连接（用于并发场景）."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def add_feed(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Feed]]:
    """向文件数据库写入 Feed."""

    async def _add(**kwargs: object) -> Feed:
        feed = Feed(**kwargs)  # type: ignore[arg-type]
        async with session_factory() as session:
            session.add(feed)
            await session.commit()
        return feed

    return _add


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    parser: FeedParser,
    fake_provider: FakeProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """创建测试用的 HTTP 客户端（依赖全部替换为测试实现）."""

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_parser] = lambda: parser
    app.dependency_overrides[get_synthesizer] = lambda: NewsletterSynthesizer(
        fake_provider
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

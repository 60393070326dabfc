"""API 依赖注入."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedletter.config import get_settings
from feedletter.core.pipeline import NewsletterPipeline
from feedletter.core.refresh import FeedRefresher
from feedletter.fetcher.parser import FeedParser
from feedletter.llm.factory import create_llm_provider
from feedletter.llm.synthesizer import NewsletterSynthesizer
from feedletter.models.database import async_session_maker

# 进程内共享的 HTTP 客户端
_parser: FeedParser | None = None


def get_parser() -> FeedParser:
    """获取共享的 FeedParser（懒加载）."""
    global _parser
    if _parser is None:
        settings = get_settings()
        _parser = FeedParser(
            timeout=settings.feed_fetch_timeout_seconds,
            user_agent=settings.user_agent,
        )
    return _parser


async def close_parser() -> None:
    """关闭共享的 FeedParser."""
    global _parser
    if _parser is not None:
        await _parser.close()
        _parser = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_maker()


def get_refresher(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    parser: FeedParser = Depends(get_parser),
) -> FeedRefresher:
    return FeedRefresher(session_factory, parser)


def get_synthesizer() -> NewsletterSynthesizer:
    return NewsletterSynthesizer(create_llm_provider(get_settings()))


def get_pipeline(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    parser: FeedParser = Depends(get_parser),
) -> NewsletterPipeline:
    """不含内容生成的流水线（刷新、查询）."""
    return NewsletterPipeline(session_factory, parser, settings=get_settings())


def get_generation_pipeline(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    parser: FeedParser = Depends(get_parser),
    synthesizer: NewsletterSynthesizer = Depends(get_synthesizer),
) -> NewsletterPipeline:
    """带 LLM 内容生成的完整流水线."""
    return NewsletterPipeline(
        session_factory,
        parser,
        settings=get_settings(),
        synthesizer=synthesizer,
    )

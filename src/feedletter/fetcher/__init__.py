"""RSS 抓取与解析模块."""

from feedletter.fetcher.parser import (
    ArticleData,
    FeedMetadata,
    FeedParser,
    ParsedFeed,
    extract_articles,
    extract_feed_metadata,
    parse_document,
)

__all__ = [
    "ArticleData",
    "FeedMetadata",
    "FeedParser",
    "ParsedFeed",
    "extract_articles",
    "extract_feed_metadata",
    "parse_document",
]

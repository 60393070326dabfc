"""数据模型."""

from feedletter.models.article import Article, ArticleSource
from feedletter.models.database import get_session, init_db
from feedletter.models.feed import Feed
from feedletter.models.newsletter import Newsletter, UserSettings

__all__ = [
    "Article",
    "ArticleSource",
    "Feed",
    "Newsletter",
    "UserSettings",
    "get_session",
    "init_db",
]

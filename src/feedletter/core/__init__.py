"""核心业务逻辑."""

from feedletter.core.freshness import FreshnessClassifier
from feedletter.core.merger import ArticleMerger, MergeResult, UpsertOutcome
from feedletter.core.pipeline import GenerationRequest, NewsletterPipeline
from feedletter.core.refresh import FeedRefresher, RefreshSummary
from feedletter.core.retrieval import ArticleRetriever, WindowArticle
from feedletter.core.subscriptions import SubscriptionService

__all__ = [
    "ArticleMerger",
    "ArticleRetriever",
    "FeedRefresher",
    "FreshnessClassifier",
    "GenerationRequest",
    "MergeResult",
    "NewsletterPipeline",
    "RefreshSummary",
    "SubscriptionService",
    "UpsertOutcome",
    "WindowArticle",
]

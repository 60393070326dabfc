"""文章 API."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from feedletter.core.retrieval import ArticleRetriever
from feedletter.models.database import get_session

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("")
async def list_articles(
    feed_id: str | None = Query(None, description="按 Feed 筛选"),
    owner_id: str | None = Query(None, description="按订阅者筛选"),
    limit: int = Query(50, ge=1, le=100, description="返回数量"),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取最新文章."""
    retriever = ArticleRetriever(session)
    if feed_id:
        articles = await retriever.get_articles_by_feed(feed_id, limit)
    elif owner_id:
        articles = await retriever.get_recent_articles(owner_id, limit)
    else:
        raise HTTPException(status_code=400, detail="需要 feed_id 或 owner_id")

    return {
        "total": len(articles),
        "items": [article.model_dump(mode="json") for article in articles],
    }


@router.get("/window")
async def list_articles_in_window(
    feed_ids: list[str] = Query(..., description="Feed ID 列表"),
    start: datetime = Query(..., description="起始时间（含）"),
    end: datetime = Query(..., description="结束时间（含）"),
    limit: int = Query(100, ge=1, le=500, description="返回数量上限"),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取时间窗口内的文章（可能为空）."""
    retriever = ArticleRetriever(session)
    articles = await retriever.get_articles_in_window(feed_ids, start, end, limit)
    return {
        "total": len(articles),
        "items": [article.model_dump(mode="json") for article in articles],
    }


@router.get("/{article_id}")
async def get_article(
    article_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取文章详情及来源列表."""
    retriever = ArticleRetriever(session)
    article = await retriever.get_article(article_id)
    data = article.model_dump(mode="json")
    data["source_feed_ids"] = await retriever.get_source_feed_ids(article.guid)
    return data

"""Newsletter 生成 API."""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from feedletter.api.deps import get_generation_pipeline, get_pipeline
from feedletter.core.pipeline import GenerationRequest, NewsletterPipeline, validate_request
from feedletter.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])


def _format_event(event: dict) -> str:
    data = json.dumps(event, ensure_ascii=False, default=str)
    return f"event: {event['type']}\ndata: {data}\n\n"


async def _close_provider(pipeline: NewsletterPipeline) -> None:
    if pipeline.synthesizer is not None:
        await pipeline.synthesizer.provider.close()


async def _event_stream(
    pipeline: NewsletterPipeline,
    request: GenerationRequest,
) -> AsyncIterator[str]:
    try:
        async for event in pipeline.stream_events(request):
            yield _format_event(event)
    finally:
        await _close_provider(pipeline)


@router.post("/articles")
async def prepare_articles(
    request: GenerationRequest,
    pipeline: NewsletterPipeline = Depends(get_pipeline),
) -> dict:
    """刷新过期 Feed 并返回时间窗口内的文章（不生成内容）."""
    validate_request(request)
    articles = await pipeline.prepare_articles(
        request.feed_ids, request.start_date, request.end_date
    )
    return {
        "total": len(articles),
        "items": [article.model_dump(mode="json") for article in articles],
    }


@router.post("/generate-stream")
async def generate_stream(
    request: GenerationRequest,
    pipeline: NewsletterPipeline = Depends(get_generation_pipeline),
) -> StreamingResponse:
    """
    流式生成 Newsletter（Server-Sent Events）.

    参数错误直接返回 400，不进入事件流。
    """
    try:
        validate_request(request)
    except ValidationError:
        await _close_provider(pipeline)
        raise

    logger.info(
        f"开始生成 Newsletter: feeds={len(request.feed_ids)}, "
        f"{request.start_date} ~ {request.end_date}"
    )
    return StreamingResponse(
        _event_stream(pipeline, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )

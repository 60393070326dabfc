"""Feedletter 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feedletter.api import articles, feeds, newsletter, newsletters, preferences
from feedletter.api.deps import close_parser
from feedletter.config import get_settings
from feedletter.errors import FeedletterError
from feedletter.models.database import close_db, init_db
from feedletter.scheduler import create_scheduler, shutdown_scheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    # 启动时初始化
    logger.info("正在初始化数据库...")
    await init_db(app_settings.database_url)

    if app_settings.scheduler_enabled:
        logger.info("正在启动定时任务...")
        create_scheduler(app_settings)

    logger.info("Feedletter 启动完成！")
    yield

    # 关闭时清理
    logger.info("正在关闭...")
    await shutdown_scheduler()
    await close_parser()
    await close_db()
    logger.info("Feedletter 已关闭")


app = FastAPI(
    title="Feedletter",
    description="RSS 聚合与 Newsletter 生成服务",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应该限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FeedletterError)
async def feedletter_error_handler(request: Request, exc: FeedletterError) -> JSONResponse:
    """业务错误统一转为 JSON 响应."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 失败 ({exc.kind}): {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "kind": exc.kind},
    )


# 注册路由
app.include_router(feeds.router)
app.include_router(articles.router)
app.include_router(newsletter.router)
app.include_router(newsletters.router)
app.include_router(preferences.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "Feedletter",
        "version": "0.1.0",
        "description": "RSS 聚合与 Newsletter 生成服务",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "feedletter.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""应用配置管理."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 数据库
    database_url: str = "sqlite+aiosqlite:///./feedletter.db"

    # 刷新策略
    cache_window_minutes: int = 180  # 同一 URL 3 小时内抓取过则视为新鲜
    feed_fetch_timeout_seconds: float = 10.0
    refresh_batch_timeout_seconds: float = 300.0
    article_limit: int = 100
    user_agent: str = "Mozilla/5.0 (compatible; RSS Newsletter Bot/1.0)"

    # 定时任务
    scheduler_enabled: bool = True
    refresh_interval_minutes: int = 60

    # LLM 配置
    llm_provider: Literal["openai", "ollama"] = "openai"

    # OpenAI 配置
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"

    # Ollama 配置
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()

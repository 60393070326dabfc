"""Newsletter 内容生成."""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import from_json

from feedletter.errors import SynthesisError
from feedletter.llm.base import LLMProvider, Message
from feedletter.models.newsletter import UserSettings

logger = logging.getLogger(__name__)

SUMMARY_EXCERPT_LENGTH = 200

SYSTEM_PROMPT = """You are an expert newsletter writer. You write professional, \
engaging newsletters from RSS articles and always answer with a single JSON object."""

USER_PROMPT_TEMPLATE = """Create a professional, engaging newsletter from these RSS articles.

DATE RANGE: {start_date} to {end_date}

{newsletter_settings}{user_instructions}ARTICLES ({article_count} total):
{article_summaries}

Create a newsletter with:

1. **5 Newsletter Titles**: Creative titles capturing the content period
2. **5 Email Subject Lines**: Compelling subject lines to drive opens
3. **Newsletter Body** (800-1200 words, Markdown format):
   - Strong opening hook
   - Use headings (##, ###) for structure
   - Highlight important stories with context
   - Group related stories thematically
   - Use **bold** and *italics* for emphasis
   - Include blockquotes (>) for key quotes
   - Maintain professional, engaging tone
   - Conclude with forward-looking statement
4. **5 Top Announcements**: Brief, punchy format
5. **Additional Information**: Supplementary notes, trends, recommendations (Markdown)

Return JSON with exactly these keys:
{{
  "suggested_titles": ["...", "...", "...", "...", "..."],
  "suggested_subject_lines": ["...", "...", "...", "...", "..."],
  "body": "...",
  "top_announcements": ["...", "...", "...", "...", "..."],
  "additional_info": "..."
}}"""


class ArticleDigest(BaseModel):
    """喂给 LLM 的单篇文章摘要."""

    title: str
    source_name: str
    publish_date: datetime
    excerpt: str
    link: str


class GeneratedNewsletter(BaseModel):
    """Newsletter 生成结果."""

    suggested_titles: list[str] = Field(min_length=5, max_length=5)
    suggested_subject_lines: list[str] = Field(min_length=5, max_length=5)
    body: str
    top_announcements: list[str] = Field(min_length=5, max_length=5)
    additional_info: str | None = None


def make_excerpt(summary: str | None, content: str | None) -> str:
    """摘要优先，其次正文前 200 字符."""
    if summary:
        return summary
    if content:
        return content[:SUMMARY_EXCERPT_LENGTH]
    return "No summary available"


def build_article_summaries(articles: Sequence[ArticleDigest]) -> str:
    """把文章列表格式化为提示词中的文本块."""
    blocks = []
    for index, article in enumerate(articles, 1):
        blocks.append(
            f'{index}. "{article.title}"\n'
            f"   Source: {article.source_name}\n"
            f"   Published: {article.publish_date:%Y-%m-%d}\n"
            f"   Summary: {article.excerpt}\n"
            f"   Link: {article.link}\n"
        )
    return "\n".join(blocks)


SETTINGS_LABELS = [
    ("newsletter_name", "Newsletter name"),
    ("description", "Description"),
    ("target_audience", "Target audience"),
    ("default_tone", "Tone"),
    ("brand_voice", "Brand voice"),
    ("company_name", "Company"),
    ("industry", "Industry"),
    ("sender_name", "Sender"),
    ("custom_footer", "Footer"),
    ("disclaimer_text", "Disclaimer"),
]


def build_settings_block(settings: UserSettings | None) -> str:
    """把用户偏好格式化为提示词片段，没有可用字段时返回空串."""
    if settings is None:
        return ""

    lines = [
        f"- {label}: {getattr(settings, key)}"
        for key, label in SETTINGS_LABELS
        if getattr(settings, key)
    ]
    if settings.default_tags:
        lines.append(f"- Tags: {', '.join(settings.default_tags)}")
    if not lines:
        return ""
    return "NEWSLETTER SETTINGS:\n" + "\n".join(lines) + "\n\n"


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_partial_json(text: str) -> dict[str, Any] | None:
    """
    解析可能不完整的 JSON 对象.

    未闭合的字符串保留已生成的部分，写了一半的键被丢弃。无法得到对象时返回 None。
    """
    text = _strip_code_fence(text)
    start = text.find("{")
    if start < 0:
        return None

    try:
        value = from_json(text[start:], allow_partial="trailing-strings")
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def parse_newsletter(text: str) -> GeneratedNewsletter:
    """解析完整的 LLM 输出."""
    try:
        data = json.loads(_strip_code_fence(text))
        return GeneratedNewsletter.model_validate(data)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        msg = f"Newsletter 生成结果格式错误: {e}"
        raise SynthesisError(msg) from e


class NewsletterSynthesizer:
    """根据文章列表流式生成 Newsletter."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    def build_messages(
        self,
        articles: Sequence[ArticleDigest],
        start_date: datetime,
        end_date: datetime,
        user_input: str | None = None,
        settings: UserSettings | None = None,
    ) -> list[Message]:
        """构建对话消息，用户偏好和用户要求都写入提示词."""
        instructions = f"USER INSTRUCTIONS:\n{user_input}\n\n" if user_input else ""
        user_content = USER_PROMPT_TEMPLATE.format(
            start_date=f"{start_date:%Y-%m-%d}",
            end_date=f"{end_date:%Y-%m-%d}",
            newsletter_settings=build_settings_block(settings),
            user_instructions=instructions,
            article_count=len(articles),
            article_summaries=build_article_summaries(articles),
        )
        return [
            Message(role="system", content=SYSTEM_PROMPT),
            Message(role="user", content=user_content),
        ]

    async def stream(
        self,
        articles: Sequence[ArticleDigest],
        start_date: datetime,
        end_date: datetime,
        user_input: str | None = None,
        settings: UserSettings | None = None,
    ) -> AsyncIterator[dict[str, Any] | GeneratedNewsletter]:
        """
        流式生成.

        过程中产出不完整的 dict（仅在内容变化时），
        最后产出校验过的 GeneratedNewsletter。
        """
        messages = self.build_messages(
            articles, start_date, end_date, user_input, settings
        )
        buffer = ""
        last_partial: dict[str, Any] | None = None

        async for chunk in self.provider.chat_stream(messages):
            buffer += chunk
            partial = parse_partial_json(buffer)
            if partial is not None and partial != last_partial:
                last_partial = partial
                yield partial

        logger.info(f"Newsletter 生成完成，共 {len(buffer)} 字符")
        yield parse_newsletter(buffer)

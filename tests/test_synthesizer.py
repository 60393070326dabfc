"""测试 Newsletter 内容生成."""

from datetime import datetime

import pytest

from feedletter.errors import SynthesisError
from feedletter.llm.synthesizer import (
    ArticleDigest,
    GeneratedNewsletter,
    NewsletterSynthesizer,
    build_article_summaries,
    build_settings_block,
    make_excerpt,
    parse_newsletter,
    parse_partial_json,
)
from feedletter.models.newsletter import UserSettings

DIGEST = ArticleDigest(
    title="Launch day",
    source_name="Example News",
    publish_date=datetime(2024, 1, 2, 9, 30),
    excerpt="Something launched.",
    link="https://example.com/launch",
)


class TestMakeExcerpt:
    """测试文章摘要选取."""

    def test_summary_first(self) -> None:
        assert make_excerpt("summary", "content") == "summary"

    def test_content_truncated(self) -> None:
        """没有摘要时取正文前 200 字符."""
        assert make_excerpt(None, "x" * 500) == "x" * 200

    def test_placeholder(self) -> None:
        assert make_excerpt(None, None) == "No summary available"


class TestParsePartialJson:
    """测试不完整 JSON 解析."""

    def test_unterminated_string(self) -> None:
        """补全未闭合的字符串."""
        assert parse_partial_json('{"body": "Hello wor') == {"body": "Hello wor"}

    def test_unterminated_array(self) -> None:
        """补全未闭合的数组."""
        assert parse_partial_json('{"suggested_titles": ["A", "B') == {
            "suggested_titles": ["A", "B"]
        }

    def test_dangling_key_is_dropped(self) -> None:
        """没有值的键被丢弃."""
        assert parse_partial_json('{"body": "x", "top_anno') == {"body": "x"}
        assert parse_partial_json('{"a": 1, "b":') == {"a": 1}

    def test_escaped_quote_inside_string(self) -> None:
        assert parse_partial_json('{"body": "say \\"hi') == {"body": 'say "hi'}

    def test_code_fence_is_stripped(self) -> None:
        assert parse_partial_json('```json\n{"body": "x"}\n```') == {"body": "x"}

    def test_not_an_object(self) -> None:
        """无法得到对象时返回 None."""
        assert parse_partial_json("") is None
        assert parse_partial_json("no json here") is None


class TestSettingsBlock:
    """测试用户偏好提示词片段."""

    def test_no_settings(self) -> None:
        assert build_settings_block(None) == ""
        assert build_settings_block(UserSettings(owner_id="alice")) == ""

    def test_only_filled_fields(self) -> None:
        """只列出已填写的字段."""
        settings = UserSettings(
            owner_id="alice",
            newsletter_name="Weekly Wire",
            brand_voice="Plainspoken",
            default_tags=["ai", "infra"],
        )

        block = build_settings_block(settings)

        assert block.startswith("NEWSLETTER SETTINGS:\n")
        assert "- Newsletter name: Weekly Wire" in block
        assert "- Brand voice: Plainspoken" in block
        assert "- Tags: ai, infra" in block
        assert "Industry" not in block


class TestParseNewsletter:
    """测试完整结果校验."""

    def test_valid(self, fake_provider) -> None:
        newsletter = parse_newsletter(fake_provider.text)
        assert newsletter.suggested_titles == ["T1", "T2", "T3", "T4", "T5"]
        assert newsletter.additional_info == "More soon."

    def test_wrong_list_length(self) -> None:
        """列表必须恰好 5 项."""
        text = (
            '{"suggested_titles": ["only one"], '
            '"suggested_subject_lines": ["1", "2", "3", "4", "5"], '
            '"body": "b", "top_announcements": ["1", "2", "3", "4", "5"]}'
        )
        with pytest.raises(SynthesisError):
            parse_newsletter(text)

    def test_invalid_json(self) -> None:
        with pytest.raises(SynthesisError):
            parse_newsletter('{"body": ')


class TestNewsletterSynthesizer:
    """测试流式生成."""

    def test_build_messages(self, fake_provider) -> None:
        """提示词包含日期范围、用户要求和文章列表."""
        synthesizer = NewsletterSynthesizer(fake_provider)

        messages = synthesizer.build_messages(
            [DIGEST],
            datetime(2024, 1, 1),
            datetime(2024, 1, 7),
            user_input="Focus on launches",
        )

        assert [message.role for message in messages] == ["system", "user"]
        user = messages[1].content
        assert "DATE RANGE: 2024-01-01 to 2024-01-07" in user
        assert "Focus on launches" in user
        assert "ARTICLES (1 total)" in user
        assert "Source: Example News" in user
        assert "NEWSLETTER SETTINGS" not in user

    def test_build_messages_with_settings(self, fake_provider) -> None:
        """偏好出现在用户要求之前."""
        synthesizer = NewsletterSynthesizer(fake_provider)
        settings = UserSettings(owner_id="alice", industry="Fintech")

        messages = synthesizer.build_messages(
            [DIGEST],
            datetime(2024, 1, 1),
            datetime(2024, 1, 7),
            user_input="Focus on launches",
            settings=settings,
        )

        user = messages[1].content
        assert user.index("- Industry: Fintech") < user.index("USER INSTRUCTIONS")

    def test_article_summaries_block(self) -> None:
        block = build_article_summaries([DIGEST])
        assert block.startswith('1. "Launch day"')
        assert "Published: 2024-01-02" in block
        assert "Link: https://example.com/launch" in block

    async def test_stream_yields_partials_then_result(self, fake_provider) -> None:
        """先产出变化的部分结果，最后产出校验后的完整结果."""
        synthesizer = NewsletterSynthesizer(fake_provider)

        items = [
            item
            async for item in synthesizer.stream(
                [DIGEST], datetime(2024, 1, 1), datetime(2024, 1, 7)
            )
        ]

        *partials, final = items
        assert isinstance(final, GeneratedNewsletter)
        assert final.body.startswith("## Weekly")
        assert partials
        assert all(isinstance(partial, dict) for partial in partials)
        assert all(a != b for a, b in zip(partials, partials[1:], strict=False))

    async def test_stream_invalid_output(self, fake_provider) -> None:
        """最终结果无效时抛出 SynthesisError."""
        fake_provider.text = '{"body": "incomplete"}'
        synthesizer = NewsletterSynthesizer(fake_provider)

        with pytest.raises(SynthesisError):
            async for _ in synthesizer.stream(
                [DIGEST], datetime(2024, 1, 1), datetime(2024, 1, 7)
            ):
                pass

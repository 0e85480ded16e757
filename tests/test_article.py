"""Tests for article extraction."""

from unittest.mock import patch

from page_summarizer.constants import ERRORS, MAX_CONTENT_LENGTH
from page_summarizer.sources.article import extract_content, is_content_too_short, text_length

PARAGRAPH = (
    "Researchers published a detailed study of how city parks change summer temperatures. "
    "They measured shade, soil moisture and wind across dozens of neighborhoods over three years. "
)


def article_page(body: str, title: str = "Parks and Heat") -> str:
    return f"""<html>
<head><title>{title}</title><script>var tracking = "{'x' * 200}";</script></head>
<body>
<nav><a href="/">Home</a> <a href="/news">News</a></nav>
<article>{body}</article>
<footer>Copyright</footer>
</body>
</html>"""


class TestTextHelpers:
    """Tests for length helpers."""

    def test_text_length(self) -> None:
        assert text_length("abc") == 3
        assert text_length(None) == 0
        assert text_length(42) == 0

    def test_is_content_too_short(self) -> None:
        assert is_content_too_short("x" * 499)
        assert not is_content_too_short("x" * 500)
        assert is_content_too_short(None)


class TestExtractContent:
    """Tests for extract_content."""

    def test_short_html(self) -> None:
        result = extract_content("<html><body>Hi</body></html>", "https://example.com")
        assert not result.success
        assert result.error == ERRORS["CONTENT_TOO_SHORT"]

    def test_article_text(self) -> None:
        body = "".join(f"<p>{PARAGRAPH}</p>" for _ in range(6))

        result = extract_content(article_page(body), "https://example.com/parks")

        assert result.success
        assert result.title == "Parks and Heat"
        assert "city parks change summer temperatures" in result.content
        assert "tracking" not in result.content
        assert "  " not in result.content

    def test_long_article_is_truncated(self) -> None:
        body = "".join(f"<p>{PARAGRAPH}</p>" for _ in range(400))

        result = extract_content(article_page(body), "https://example.com/parks")

        assert result.success
        assert len(result.content) == MAX_CONTENT_LENGTH + 3
        assert result.content.endswith("...")

    def test_selector_fallback(self) -> None:
        html = (
            "<html><head><title>Fallback</title></head><body>"
            f"<div>menu</div><main>{PARAGRAPH * 6}</main></body></html>"
        )

        with patch("page_summarizer.sources.article._with_readability", return_value=None):
            result = extract_content(html, "https://example.com")

        assert result.success
        assert result.title == "Fallback"
        assert result.content.startswith("Researchers published")
        assert "menu" not in result.content

    def test_no_readable_text(self) -> None:
        html = f"<html><body><script>{'var a = 1;' * 100}</script><p>Tiny</p></body></html>"

        result = extract_content(html, "https://example.com")

        assert not result.success
        assert result.error == ERRORS["CONTENT_EXTRACTION_FAILED"]

"""
HTML to Markdown conversion for extracted articles.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter

from pagelift.exceptions import MarkdownConversionError
from pagelift.protocols import ArchiveSource, FormattedArticle, StrategySource

logger = structlog.get_logger(__name__)

STRIP_TAGS = ["script", "style", "noscript", "iframe", "form", "button", "input", "select", "textarea", "aside", "nav"]
STRIP_ROLES = ("complementary", "navigation")

IMAGE_WITH_TITLE = re.compile(r'!\[[^\]]*\]\(([^\s)]+)\s+".+?"\)', re.DOTALL)
IMAGE = re.compile(r"!\[[^\]]*\]\(([^\s)]+)\)")
LINK_OR_BRACKETS = re.compile(
    r"(?P<link>!?\[(?P<text>(?:[^\[\]]|\[[^\[\]]*\])*)\]\((?P<target>[^)]*)\))|\[(?P<bare>[^\[\]]+)\]"
)
INNER_BRACKETS = re.compile(r"\[([^\[\]]+)\]")
EXCESS_NEWLINES = re.compile(r"\n{3,}")

SOURCE_LABELS = {
    StrategySource.GOOGLEBOT.value: "Googlebot",
    StrategySource.BINGBOT.value: "Bingbot",
    StrategySource.SOCIAL_REFERRER.value: "Social Referrer",
    StrategySource.MINIMAL_REFETCH.value: "WallHopper",
    StrategySource.ARCHIVE_IS.value: "Archive.is",
    StrategySource.WAYBACK.value: "Wayback Machine",
    StrategySource.BROWSER_TAB.value: "Browser",
}


def _parenthesize_brackets(match: re.Match[str]) -> str:
    if match.group("link") is None:
        return f"({match.group('bare')})"
    prefix = "!" if match.group("link").startswith("!") else ""
    text = INNER_BRACKETS.sub(r"(\1)", match.group("text"))
    return f"{prefix}[{text}]({match.group('target')})"


def _is_bracketed(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("[") and stripped.endswith("]")


class ArticleConverter(MarkdownConverter):
    """markdownify converter tuned for article bodies."""

    def convert_em(self, el, text, *args, **kwargs):
        if _is_bracketed(text):
            return text
        return super().convert_em(el, text, *args, **kwargs)

    def convert_i(self, el, text, *args, **kwargs):
        return self.convert_em(el, text, *args, **kwargs)

    def convert_figcaption(self, el, text, *args, **kwargs):
        lines = [line.strip().rstrip("\\").strip() for line in (text or "").strip().splitlines()]
        lines = [line for line in lines if line]
        if not lines:
            return ""
        return "\n\n" + "\n\n".join(f"*{line}*" for line in lines) + "\n\n"


_CONVERTER = ArticleConverter(
    heading_style="ATX", bullets="-", strong_em_symbol="*", code_language="", escape_misc=False
)


def _prepare(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "lxml")
    for element in soup.find_all(STRIP_TAGS):
        element.decompose()
    for element in soup.find_all(attrs={"role": True}):
        if not element.decomposed and element.get("role") in STRIP_ROLES:
            element.decompose()

    # Linked images lose their link.
    for link in soup.find_all("a"):
        if link.decomposed or link.find("img") is None:
            continue
        link.unwrap()
    return soup


def html_to_markdown(html: str) -> str:
    """
    Convert article HTML to Markdown.

    Images are reduced to ``![](url)`` and any literal ``[text]``, inside link
    text or outside link syntax, becomes ``(text)``.

    Raises:
        MarkdownConversionError: if the converter itself fails.
    """
    try:
        soup = _prepare(html)
        root: Tag = soup.body or soup
        markdown = _CONVERTER.convert_soup(root)
    except Exception as e:
        raise MarkdownConversionError(f"Markdown conversion failed: {e}") from e

    markdown = IMAGE_WITH_TITLE.sub(r"![](\1)", markdown)
    markdown = IMAGE.sub(r"![](\1)", markdown)
    markdown = LINK_OR_BRACKETS.sub(_parenthesize_brackets, markdown)
    markdown = EXCESS_NEWLINES.sub("\n\n", markdown).strip()

    logger.debug(
        "Converted HTML to Markdown",
        html_length=len(html),
        markdown_length=len(markdown),
        headings=len(re.findall(r"^#{1,6}\s", markdown, re.MULTILINE)),
    )
    return markdown


def image_identifier(url: str) -> str:
    """Lowercased last path segment, ignoring the query string."""
    try:
        path = urlparse(url).path
    except ValueError:
        path = url.split("?", 1)[0]
    segment = path.rstrip("/").split("/")[-1] if path else ""
    return (segment or url).lower()


def dedupe_article_image(markdown: str, image_url: str) -> str:
    """Drop body images that are the same file as ``image_url``."""
    target = image_identifier(image_url)
    removed = 0

    def replace(match: re.Match[str]) -> str:
        nonlocal removed
        if image_identifier(match.group(1)) == target:
            removed += 1
            return ""
        return match.group(0)

    result = re.sub(r"!\[[^\]]*\]\(([^)\s]+)[^)]*\)", replace, markdown)
    if removed:
        logger.debug("Removed duplicate hero images", image=target, removed=removed)
    return EXCESS_NEWLINES.sub("\n\n", result).strip()


def archive_annotation(source: ArchiveSource) -> str:
    label = SOURCE_LABELS.get(source.service, source.service)
    line = f"> Retrieved via [{label}]({source.url})" if source.url else f"> Retrieved via {label}"
    if source.timestamp:
        line += f" — {source.timestamp}"
    return line


def format_article(
    title: str,
    content_html: str,
    image: Optional[str] = None,
    archive_source: Optional[ArchiveSource] = None,
    show_image: bool = True,
) -> FormattedArticle:
    """
    Build the article body Markdown.

    A conversion failure is logged and the raw HTML is used as the body, so
    formatting never fails a request.
    """
    try:
        body = html_to_markdown(content_html)
    except MarkdownConversionError as e:
        logger.warning("Markdown conversion failed, returning raw HTML", error=str(e))
        body = content_html

    if archive_source is not None:
        body = f"{archive_annotation(archive_source)}\n\n{body}"

    if image and show_image:
        body = dedupe_article_image(body, image)
        body = f"![]({image})\n\n{body}"

    return FormattedArticle(markdown=body, title=title)

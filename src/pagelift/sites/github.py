"""
GitHub: issues and pull requests with their comment timeline, and READMEs.
"""

from __future__ import annotations

import copy
import re
from html import escape
from typing import Optional, Sequence

from bs4 import Tag

from pagelift.utils.text import normalize_whitespace

from .base import BaseExtractor, ExtractorMetadata, ExtractorResult

ISSUE_CONTAINER = '[data-testid="issue-viewer-issue-container"]'
ISSUE_BODY = '[data-testid="issue-body-viewer"] .markdown-body'
ISSUE_AUTHOR_SELECTORS = (
    'a[data-testid="issue-body-header-author"]',
    ".IssueBodyHeaderAuthor-module__authorLoginLink--_S7aT",
    ".ActivityHeader-module__AuthorLink--iofTU",
    'a[href*="/users/"][data-hovercard-url*="/users/"]',
)
COMMENT_AUTHOR_SELECTORS = (
    ".ActivityHeader-module__AuthorLink--iofTU",
    'a[data-testid="avatar-link"]',
    'a[href^="/"][data-hovercard-url*="/users/"]',
)
BODY_NOISE_SELECTORS = (
    "button",
    '[data-testid*="button"]',
    '[data-testid*="menu"]',
    ".js-clipboard-copy",
    ".zeroclipboard-container",
    ".octicon",
    ".anchor",
)
REPO_PATTERN = re.compile(r"github\.com/([^/]+)/([^/?#]+)")
USER_URL_PATTERN = re.compile(r"github\.com/([^/?#]+)")
DESCRIPTION_LENGTH = 200


class GitHubExtractor(BaseExtractor):
    @property
    def site_name(self) -> str:
        match = REPO_PATTERN.search(self.url)
        if match:
            return f"GitHub - {match.group(1)}/{match.group(2)}"
        return "GitHub"

    @property
    def page_type(self) -> str:
        if "/issues/" in self.url:
            return "issue"
        if "/pull/" in self.url:
            return "pr"
        if "/discussions/" in self.url:
            return "discussion"
        if self.select_one(ISSUE_CONTAINER) is not None:
            return "issue"
        if self.select_one("#readme") is not None:
            return "readme"
        return "unknown"

    def can_extract(self) -> bool:
        if self.page_type in ("issue", "pr"):
            return (
                self.select_one(ISSUE_BODY) is not None
                or self.select_one(".react-issue-comment .markdown-body") is not None
            )
        return self.select_one(".markdown-body") is not None

    def extract(self) -> ExtractorResult:
        if self.page_type in ("issue", "pr"):
            return self._extract_issue()
        return self._extract_readme()

    def _extract_issue(self) -> ExtractorResult:
        parts = []
        container = self.select_one(ISSUE_CONTAINER)
        author: Optional[str] = None
        if container is not None:
            author = self._author(container, ISSUE_AUTHOR_SELECTORS)
            body = self.select_one(ISSUE_BODY, container)
            if body is not None:
                opened = self.attr(self.select_one("relative-time", container), "datetime")
                header = f"<strong>{escape(author)}</strong>"
                if opened:
                    noun = "pull request" if self.page_type == "pr" else "issue"
                    header += f" opened this {noun} on {escape(self.format_date(opened))}"
                parts.append(f'<div class="issue-author">{header}</div>')
                parts.append(f'<div class="issue-body">{self._clean_body(body)}</div>')

        seen = set()
        for wrapper in self.select("[data-wrapper-timeline-id]"):
            comment = self.select_one(".react-issue-comment", wrapper)
            comment_id = self.attr(wrapper, "data-wrapper-timeline-id")
            if comment is None or not comment_id or comment_id in seen:
                continue
            seen.add(comment_id)

            body = self.select_one(".markdown-body", comment)
            body_html = self._clean_body(body) if body is not None else ""
            if not body_html:
                continue
            header = f"<strong>{escape(self._author(comment, COMMENT_AUTHOR_SELECTORS))}</strong>"
            commented = self.attr(self.select_one("relative-time", comment), "datetime")
            if commented:
                header += f" commented on {escape(self.format_date(commented))}"
            parts.append(
                f'<div class="comment"><div class="comment-header">{header}</div>'
                f'<div class="comment-body">{body_html}</div></div>'
            )

        content = "\n\n".join(parts)
        text = self.strip_html(content)
        return ExtractorResult(
            content=content,
            text_content=text,
            metadata=ExtractorMetadata(
                title=self._title(),
                author=author,
                site_name=self.site_name,
                description=normalize_whitespace(text[:DESCRIPTION_LENGTH]),
            ),
        )

    def _extract_readme(self) -> ExtractorResult:
        readme = self.select_one("#readme .markdown-body") or self.select_one(".markdown-body")
        content = self._clean_body(readme) if readme is not None else ""
        text = self.strip_html(content)
        return ExtractorResult(
            content=content,
            text_content=text,
            metadata=ExtractorMetadata(
                title=self._title(),
                site_name=self.site_name,
                description=normalize_whitespace(text[:DESCRIPTION_LENGTH]),
            ),
        )

    def _author(self, container: Tag, selectors: Sequence[str]) -> str:
        """Username taken from the first author link's href."""
        for selector in selectors:
            href = self.attr(self.select_one(selector, container), "href")
            if not href:
                continue
            if href.startswith("/"):
                username = href[1:].split("/")[0]
                if username and "?" not in username:
                    return username
            else:
                match = USER_URL_PATTERN.search(href)
                if match:
                    return match.group(1)
        return "Unknown"

    def _clean_body(self, body: Tag) -> str:
        clone = copy.copy(body)
        for selector in BODY_NOISE_SELECTORS:
            for element in self.select(selector, clone):
                element.decompose()
        return self.inner_html(clone)

    def _title(self) -> str:
        title = self.select_one('[data-testid="issue-title"]')
        if title is not None:
            return self.text_of(title)
        return self.soup.title.get_text().strip() if self.soup.title else ""

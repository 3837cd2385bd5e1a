"""
Reddit: self posts and link posts with their top comments, across the
shreddit, React and old.reddit page generations.
"""

from __future__ import annotations

import re
from html import escape
from typing import List, Tuple

from pagelift.utils.text import normalize_whitespace

from .base import BaseExtractor, ExtractorMetadata, ExtractorResult, nest_by_depth

MAX_COMMENTS = 20
SUBREDDIT_PATTERN = re.compile(r"/r/([^/]+)")
TITLE_SUFFIX_PATTERN = re.compile(r" : .+$")
DESCRIPTION_LENGTH = 200


def _comment_html(author: str, body_html: str) -> str:
    return (
        f'<div class="comment"><div class="comment-header"><strong>{escape(author)}</strong></div>'
        f'<div class="comment-body">{body_html}</div></div>'
    )


class RedditExtractor(BaseExtractor):
    @property
    def site_name(self) -> str:
        subreddit = self._subreddit()
        return f"Reddit - r/{subreddit}" if subreddit else "Reddit"

    def can_extract(self) -> bool:
        return any(
            self.select_one(selector) is not None
            for selector in ('[data-test-id="post-content"]', ".expando", '[slot="text-body"]', ".usertext-body")
        )

    def extract(self) -> ExtractorResult:
        content = self._post_html()
        comments = self._comments_html()
        if comments:
            content += f"\n\n<hr>\n<h2>Comments</h2>\n{comments}"
        text = self.strip_html(content)
        return ExtractorResult(
            content=content,
            text_content=text,
            metadata=ExtractorMetadata(
                title=self._title(),
                author=self._author() or None,
                site_name=self.site_name,
                description=normalize_whitespace(text[:DESCRIPTION_LENGTH]),
                published=self._published() or None,
            ),
        )

    def _post_html(self) -> str:
        shreddit = self.select_one('[slot="text-body"]')
        if shreddit is not None:
            return self.inner_html(shreddit)

        react = self.select_one('[data-test-id="post-content"]')
        if react is not None:
            text_body = self.select_one('[data-click-id="text"]', react)
            if text_body is not None:
                return self.inner_html(text_body)
            href = self.attr(self.select_one('a[data-click-id="body"]', react), "href")
            if href:
                return f'<p><a href="{escape(href)}">{escape(href)}</a></p>'

        old = self.select_one(".expando .usertext-body") or self.select_one(".usertext-body")
        return self.inner_html(old)

    def _comments_html(self) -> str:
        shreddit = self.select("shreddit-comment")
        if shreddit:
            items: List[Tuple[int, str]] = []
            for comment in shreddit[:MAX_COMMENTS]:
                body = self.select_one('[slot="comment-body"]', comment)
                if body is None:
                    continue
                try:
                    depth = int(self.attr(comment, "depth") or 0)
                except ValueError:
                    depth = 0
                author = self.attr(comment, "author") or "[deleted]"
                items.append((depth, _comment_html(author, self.inner_html(body))))
            return nest_by_depth(items)

        react = self.select('[data-testid="comment"]')
        if react:
            return "\n".join(
                _comment_html(
                    self.text_of(self.select_one('[data-testid="comment_author_link"]', comment)) or "[deleted]",
                    self.inner_html(body),
                )
                for comment in react[:MAX_COMMENTS]
                if (body := self.select_one(":scope > div:last-child", comment)) is not None
            )

        return "\n".join(
            _comment_html(
                self.text_of(self.select_one(".author", comment)) or "[deleted]",
                self.inner_html(body),
            )
            for comment in self.select(".comment")[:MAX_COMMENTS]
            if (body := self.select_one(".usertext-body", comment)) is not None
        )

    def _subreddit(self) -> str:
        match = SUBREDDIT_PATTERN.search(self.url)
        if match:
            return match.group(1)
        href = self.attr(self.select_one('a[href^="/r/"]'), "href") or ""
        match = SUBREDDIT_PATTERN.search(href)
        return match.group(1) if match else ""

    def _title(self) -> str:
        post = self.select_one("shreddit-post")
        if post is not None:
            return self.attr(post, "post-title") or ""
        heading = self.select_one('[data-test-id="post-content"] h1') or self.select_one(".title a.title")
        if heading is not None:
            return self.text_of(heading)
        title = self.soup.title.get_text() if self.soup.title else ""
        return TITLE_SUFFIX_PATTERN.sub("", title).strip()

    def _author(self) -> str:
        post = self.select_one("shreddit-post")
        if post is not None:
            return self.attr(post, "author") or ""
        element = self.select_one('[data-test-id="post-content"] a[href*="/user/"]') or self.select_one(
            ".tagline .author"
        )
        return self.text_of(element)

    def _published(self) -> str:
        post = self.select_one("shreddit-post")
        created = self.attr(post, "created-timestamp") if post is not None else None
        if not created:
            created = self.attr(self.select_one("time"), "datetime")
        return created.split("T")[0] if created else ""

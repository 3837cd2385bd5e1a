"""
Hacker News: story pages with their comment thread, and single-comment
permalinks.
"""

from __future__ import annotations

from html import escape
from typing import List, Optional, Tuple

from bs4 import Tag

from .base import BaseExtractor, ExtractorMetadata, ExtractorResult, nest_by_depth

HN_BASE_URL = "https://news.ycombinator.com/"
INDENT_PIXELS_PER_LEVEL = 40
PREVIEW_LENGTH = 50


class HackerNewsExtractor(BaseExtractor):
    @property
    def site_name(self) -> str:
        return "Hacker News"

    @property
    def main_post(self) -> Optional[Tag]:
        return self.select_one(".fatitem")

    @property
    def main_comment(self) -> Optional[Tag]:
        """The permalinked comment, when the page is a comment permalink."""
        post = self.main_post
        if post is None or self.select_one('.navs a[href*="parent"]', post) is None:
            return None
        return self.select_one(".comment", post)

    def can_extract(self) -> bool:
        return self.main_post is not None

    def extract(self) -> ExtractorResult:
        comments = self._comments_html()
        content = f'<div class="hackernews-post"><div class="post-content">{self._post_html()}</div>'
        if comments:
            content += f'<hr><h2>Comments</h2><div class="hackernews-comments">{comments}</div>'
        content += "</div>"

        title = self._title()
        author = self.text_of(self.select_one(".hnuser", self.main_post))
        if self.main_comment is not None:
            description = f"Comment by {author} on Hacker News"
        else:
            description = f"{title} - by {author} on Hacker News"
        return ExtractorResult(
            content=content,
            text_content=self.strip_html(content),
            metadata=ExtractorMetadata(
                title=title,
                author=author or None,
                site_name=self.site_name,
                description=description,
                published=self._date(self.main_post) or None,
            ),
        )

    def _date(self, element: Optional[Tag]) -> str:
        timestamp = self.attr(self.select_one(".age", element), "title") or ""
        return timestamp.split("T")[0]

    def _comment_author(self, element: Optional[Tag]) -> str:
        return self.text_of(self.select_one(".hnuser", element)) or "[deleted]"

    def _post_html(self) -> str:
        post = self.main_post
        if post is None:
            return ""

        comment = self.main_comment
        if comment is not None:
            date = self._date(comment)
            points = self.text_of(self.select_one(".score", comment))
            parent = self.attr(self.select_one('.navs a[href*="parent"]', post), "href")
            meta = f"<strong>{escape(self._comment_author(comment))}</strong>"
            if date:
                meta += f" • {escape(date)}"
            if points:
                meta += f" • {escape(points)}"
            if parent:
                meta += f' • <a href="{escape(HN_BASE_URL + parent)}">parent</a>'
            body = self.inner_html(self.select_one(".commtext", comment))
            return (
                f'<div class="comment main-comment"><div class="comment-metadata">{meta}</div>'
                f'<div class="comment-content">{body}</div></div>'
            )

        html = ""
        story_url = self.attr(self.select_one("tr.athing .titleline a", post), "href") or ""
        if story_url and not story_url.startswith("item?"):
            html += f'<p><a href="{escape(story_url)}">{escape(story_url)}</a></p>'
        toptext = self.select_one(".toptext", post)
        if toptext is not None:
            html += f'<div class="post-text">{self.inner_html(toptext)}</div>'
        return html

    def _comments_html(self) -> str:
        items: List[Tuple[int, str]] = []
        seen = set()
        for row in self.select("tr.comtr"):
            comment_id = self.attr(row, "id")
            if not comment_id or comment_id in seen:
                continue
            seen.add(comment_id)

            text = self.select_one(".commtext", row)
            if text is None:
                continue
            try:
                indent = int(self.attr(self.select_one(".ind img", row), "width") or 0)
            except ValueError:
                indent = 0

            points = self.text_of(self.select_one(".score", row))
            meta = (
                f"<strong>{escape(self._comment_author(row))}</strong>"
                f' • <a href="{HN_BASE_URL}item?id={escape(comment_id)}">{escape(self._date(row))}</a>'
            )
            if points:
                meta += f" • {escape(points)}"
            items.append(
                (
                    indent // INDENT_PIXELS_PER_LEVEL,
                    f'<div class="comment"><div class="comment-metadata">{meta}</div>'
                    f'<div class="comment-content">{self.inner_html(text)}</div></div>',
                )
            )
        return nest_by_depth(items)

    def _title(self) -> str:
        comment = self.main_comment
        if comment is not None:
            text = self.text_of(self.select_one(".commtext", comment))
            preview = text[:PREVIEW_LENGTH] + ("..." if len(text) > PREVIEW_LENGTH else "")
            return f"Comment by {self._comment_author(comment)}: {preview}"
        return self.text_of(self.select_one(".titleline", self.main_post))

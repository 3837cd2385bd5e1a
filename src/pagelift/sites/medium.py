"""
Medium: strips the story chrome (clap/share/listen controls, member badges,
read-time lines, duplicate hero figure) and image caption noise.
"""

from __future__ import annotations

import copy
import re

from bs4 import Tag

from pagelift.utils.text import normalize_whitespace

from .base import BaseExtractor, ExtractorMetadata, ExtractorResult

CHROME_SELECTORS = (
    # read time and metadata line
    '[data-testid="storyReadTime"]',
    ".ja.jb",
    ".ac.r.iz",
    # interactive controls
    '[data-testid="headerClapButton"]',
    '[data-testid="headerBookmarkButton"]',
    '[data-testid="audioPlayButton"]',
    '[data-testid="headerSocialShareButton"]',
    '[data-testid="headerStoryOptionsButton"]',
    ".pw-multi-vote-icon",
    ".pw-multi-vote-count",
    '[data-testid="authorPhoto"]',
    ".m.eo img",
    'button[aria-label*="clap"]',
    'button[aria-label*="bookmark"]',
    'button[aria-label*="Share"]',
    'button[aria-label*="Listen"]',
    'button[aria-label*="More"]',
    ".ko.aq",
    # member-only badges
    '[aria-label="Member-only story"]',
    ".gk.r.gl",
    # screen-reader caption text
    ".er.es.et",
    'span[class*="speechify-ignore"]',
    # duplicate hero figure
    "figure.ml.mm.mn.mo.mp.mq:first-of-type",
    # action panels and spacers
    ".ac.cw.jc",
    ".fp.l.k.j.e",
    "svg",
    "button",
    '[aria-hidden="true"]',
)
BRACKETED_TEXT_PATTERN = re.compile(r">\s*\[([^\]]+)\]\s*<")
VIEW_IMAGE_PATTERN = re.compile(r"Press enter or click to view image in full size", re.IGNORECASE)
EMPTY_BLOCK_PATTERN = re.compile(r"<(p|div)[^>]*>\s*</(p|div)>")
BLANK_LINES_PATTERN = re.compile(r"(\n\s*){3,}")
DESCRIPTION_LENGTH = 200


class MediumExtractor(BaseExtractor):
    @property
    def site_name(self) -> str:
        return "Medium"

    def can_extract(self) -> bool:
        return (
            any(
                self.select_one(selector) is not None
                for selector in ('[data-testid="storyTitle"]', ".pw-post-title", "article.meteredContent")
            )
            or "medium.com" in self.url
        )

    def extract(self) -> ExtractorResult:
        container = (
            self.select_one("article.meteredContent")
            or self.select_one("article")
            or self.select_one('[role="main"]')
            or self.soup.body
            or self.soup
        )
        clone = copy.copy(container)
        self._remove_chrome(clone)
        content = self._clean_html(self.inner_html(clone))
        text = self.strip_html(content)
        return ExtractorResult(
            content=content,
            text_content=text,
            metadata=ExtractorMetadata(
                title=self._title(),
                author=self.text_of(
                    self.select_one('[data-testid="authorName"]')
                    or self.select_one('a[rel*="author"]')
                    or self.select_one(".author-name")
                )
                or None,
                site_name=self.site_name,
                description=normalize_whitespace(text[:DESCRIPTION_LENGTH]),
            ),
        )

    def _remove_chrome(self, container: Tag) -> None:
        for selector in CHROME_SELECTORS:
            for element in self.select(selector, container):
                if not element.decomposed:
                    element.decompose()
        for image in self.select('[data-testid="og"]', container):
            if image.decomposed:
                continue
            picture = image.find_parent("picture")
            (picture or image).decompose()

    @staticmethod
    def _clean_html(content: str) -> str:
        # "[summary]" brackets at the start of a block
        content = BRACKETED_TEXT_PATTERN.sub(r"> \1<", content)
        content = VIEW_IMAGE_PATTERN.sub("", content)
        content = EMPTY_BLOCK_PATTERN.sub("", content)
        content = BLANK_LINES_PATTERN.sub("\n\n", content)
        return content.strip()

    def _title(self) -> str:
        heading = (
            self.select_one('[data-testid="storyTitle"]') or self.select_one(".pw-post-title") or self.select_one("h1")
        )
        if heading is not None:
            return self.text_of(heading)
        return self.soup.title.get_text().strip() if self.soup.title else ""

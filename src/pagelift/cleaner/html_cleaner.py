"""
HTML pre-cleaner run before main-content extraction.

Order matters: site-config overrides, then the protected set, then
negative-selector removal, then link-density removal, then lazy-image
resolution. Protection is computed before anything generic is removed so
article content whose class happens to contain "share" or "meta" survives.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Set

import structlog
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from pagelift.catalog import CleanerCatalog, load_selector_catalog
from pagelift.config.config import CleanerConfig
from pagelift.observability import histogram
from pagelift.protocols import CleaningResult

from .site_config import CaptionConfig, SiteConfig, get_site_config_for_url, load_site_configs

logger = structlog.get_logger(__name__)

LINK_DENSITY_TAGS = ["div", "section", "aside", "ul"]
NAV_HINTS = ("menu", "nav", "links")
CAPTION_TERMINATORS = (".", "!", "?")


def select_safe(root: BeautifulSoup | Tag, selector: str) -> List[Tag]:
    """``root.select`` that treats an unsupported selector as matching nothing."""
    try:
        return root.select(selector)
    except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
        logger.debug("Selector skipped", selector=selector, error=str(e))
        return []


def get_link_density(element: Tag) -> float:
    """Share of the element's text that sits inside non-hash anchors."""
    text_length = len(element.get_text())
    if text_length == 0:
        return 0.0
    link_length = 0
    for link in element.find_all("a"):
        href = link.get("href") or ""
        if isinstance(href, str) and href.startswith("#"):
            continue
        link_length += len(link.get_text())
    return link_length / text_length


def _class_string(element: Tag) -> str:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()


def _looks_like_navigation(element: Tag) -> bool:
    if element.name in ("ul", "aside"):
        return True
    class_name = _class_string(element)
    element_id = str(element.get("id") or "").lower()
    return any(hint in class_name or hint in element_id for hint in NAV_HINTS)


class HtmlCleaner:
    """Removes boilerplate subtrees from a page before extraction."""

    def __init__(self, config: Optional[CleanerConfig] = None) -> None:
        self.config = config or CleanerConfig()
        self.catalog: CleanerCatalog = load_selector_catalog(self.config.selectors_file).cleaner
        self.logger = logger.bind(component="HtmlCleaner")

    def site_config_for(self, url: str) -> Optional[SiteConfig]:
        return get_site_config_for_url(url, self.config.site_configs_file)

    def clean(self, html: str, url: str) -> CleaningResult:
        return self.clean_soup(BeautifulSoup(html, "lxml"), url)

    def clean_soup(self, soup: BeautifulSoup, url: str) -> CleaningResult:
        """Clean ``soup`` in place and report what was done."""
        removed_count = 0

        structured_article_found = bool(select_safe(soup, self.catalog.structured_article_selector))
        if structured_article_found:
            self.logger.debug("Structured article container detected", url=url)

        site_config = self.site_config_for(url)
        if site_config is not None:
            self.logger.debug("Applying site config", url=url, site=site_config.name)
            removed_count += self._apply_site_config(soup, site_config)

        protected = self._build_protected_set(soup, site_config)

        for selector in self.catalog.negative_selectors:
            for element in select_safe(soup, selector):
                if element.decomposed or id(element) in protected:
                    continue
                element.decompose()
                removed_count += 1

        link_dense_removed = self._remove_link_dense(soup, protected)
        lazy_images_resolved = self._resolve_lazy_images(soup)

        histogram("cleaner_removed_elements", removed_count + link_dense_removed)
        self.logger.debug(
            "Cleaned document",
            url=url,
            removed=removed_count,
            link_dense_removed=link_dense_removed,
            lazy_images_resolved=lazy_images_resolved,
            site_config=site_config.name if site_config else None,
        )
        return CleaningResult(
            html=str(soup),
            removed_count=removed_count,
            lazy_images_resolved=lazy_images_resolved,
            link_dense_removed=link_dense_removed,
            structured_article_found=structured_article_found,
            site_config_applied=site_config.name if site_config else None,
        )

    # --- site config ------------------------------------------------------

    def _apply_site_config(self, soup: BeautifulSoup, site_config: SiteConfig) -> int:
        removed = 0
        common = load_site_configs(self.config.site_configs_file).common_remove_selectors
        removed += self._remove_all(soup, [*common, *site_config.remove_selectors])

        for rule in site_config.remove_text_patterns:
            regex = re.compile(rule.pattern, re.IGNORECASE)
            for element in select_safe(soup, rule.selector):
                if element.decomposed:
                    continue
                if regex.search(element.get_text().strip()):
                    element.decompose()
                    removed += 1

        for selector in site_config.inline_selectors:
            for element in select_safe(soup, selector):
                if element.decomposed:
                    continue
                span = soup.new_tag("span")
                for child in list(element.contents):
                    span.append(child.extract())
                if element.get("class"):
                    span["class"] = element["class"]
                element.replace_with(span)

        if site_config.caption_config is not None:
            self._format_captions(soup, site_config.caption_config)
        return removed

    @staticmethod
    def _remove_all(soup: BeautifulSoup, selectors: Iterable[str]) -> int:
        removed = 0
        for selector in selectors:
            for element in select_safe(soup, selector):
                if not element.decomposed:
                    element.decompose()
                    removed += 1
        return removed

    @staticmethod
    def _format_captions(soup: BeautifulSoup, captions: CaptionConfig) -> None:
        for caption in select_safe(soup, captions.text_selector):
            text = caption.get_text().strip()
            if text and not text.endswith(CAPTION_TERMINATORS):
                caption.string = text + "."
            em = soup.new_tag("em")
            for child in list(caption.contents):
                em.append(child.extract())
            caption.append(em)

        for credit in select_safe(soup, captions.credit_selector):
            text = credit.get_text().strip()
            if text:
                credit.string = " " + text

    # --- protection and removal -------------------------------------------

    def _build_protected_set(self, soup: BeautifulSoup, site_config: Optional[SiteConfig]) -> Set[int]:
        """
        Identity set of elements that must survive: every protected match,
        all of its descendants, and all of its ancestors.
        """
        selectors = list(self.catalog.protected_selectors)
        if site_config is not None and site_config.article_selector:
            selectors.append(site_config.article_selector)

        protected: Set[int] = set()
        for selector in selectors:
            for element in select_safe(soup, selector):
                if id(element) in protected:
                    continue
                protected.add(id(element))
                protected.update(id(parent) for parent in element.parents)
                protected.update(id(child) for child in element.find_all(True))
        return protected

    def _remove_link_dense(self, soup: BeautifulSoup, protected: Set[int]) -> int:
        removed = 0
        for element in soup.find_all(LINK_DENSITY_TAGS):
            if element.decomposed or id(element) in protected:
                continue
            if len(element.get_text()) < self.config.min_link_density_text_length:
                continue

            density = get_link_density(element)
            if density > self.config.link_density_threshold:
                element.decompose()
                removed += 1
            elif density > self.config.nav_link_density_threshold and _looks_like_navigation(element):
                element.decompose()
                removed += 1
        return removed

    def _resolve_lazy_images(self, soup: BeautifulSoup) -> int:
        resolved = 0
        for img in soup.find_all("img"):
            src = img.get("src")
            src = src if isinstance(src, str) else ""
            is_placeholder = (
                not src or src.startswith("data:") or any(token in src for token in self.catalog.placeholder_tokens)
            )
            if not is_placeholder:
                continue
            for attr in self.catalog.lazy_load_attributes:
                lazy_src = img.get(attr)
                if isinstance(lazy_src, str) and lazy_src and not lazy_src.startswith("data:"):
                    img["srcset" if "srcset" in attr else "src"] = lazy_src
                    resolved += 1
                    break
        return resolved

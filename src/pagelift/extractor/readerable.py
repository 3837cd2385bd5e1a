"""
Cheap pre-check: does this page look like it holds an article at all?
"""

from __future__ import annotations

import math
import re

from bs4 import BeautifulSoup, Tag

UNLIKELY_CANDIDATES = re.compile(
    r"-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra|footer|gdpr|header|legends|"
    r"menu|related|remark|replies|rss|shoutbox|sidebar|skyscraper|social|sponsor|supplemental|ad-break|agegate|"
    r"pagination|pager|popup|yom-remote",
    re.IGNORECASE,
)
OK_MAYBE_CANDIDATE = re.compile(r"and|article|body|column|content|main|mathjax|shadow", re.IGNORECASE)


def class_and_id(element: Tag) -> str:
    classes = element.get("class") or []
    class_name = classes if isinstance(classes, str) else " ".join(classes)
    return f"{class_name} {element.get('id') or ''}"


def is_probably_visible(element: Tag) -> bool:
    style = str(element.get("style") or "").replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return False
    if element.has_attr("hidden"):
        return False
    if element.get("aria-hidden") == "true" and "fallback-image" not in class_and_id(element):
        return False
    return True


def _candidate_nodes(soup: BeautifulSoup) -> list[Tag]:
    nodes: list[Tag] = list(soup.find_all(["p", "pre", "article"]))
    seen = {id(node) for node in nodes}
    for br in soup.select("div > br"):
        parent = br.parent
        if parent is not None and id(parent) not in seen:
            seen.add(id(parent))
            nodes.append(parent)
    return nodes


def is_probably_readerable(soup: BeautifulSoup, min_content_length: int = 140, min_score: float = 20.0) -> bool:
    """
    Sum ``sqrt(len - min_content_length)`` over visible, likely-content text
    blocks and report whether the total passes ``min_score``.
    """
    score = 0.0
    for node in _candidate_nodes(soup):
        if not is_probably_visible(node):
            continue
        match_string = class_and_id(node)
        if UNLIKELY_CANDIDATES.search(match_string) and not OK_MAYBE_CANDIDATE.search(match_string):
            continue
        if node.name == "p" and node.find_parent("li") is not None:
            continue

        length = len(node.get_text().strip())
        if length < min_content_length:
            continue
        score += math.sqrt(length - min_content_length)
        if score > min_score:
            return True
    return False

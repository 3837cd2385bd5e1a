"""
Plain-text helpers.
"""

from __future__ import annotations

import re

from selectolax.lexbor import LexborHTMLParser

WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text or "").strip()


def html_to_text(html: str) -> str:
    """Tag-stripped, whitespace-normalised text of an HTML fragment."""
    if not html or not html.strip():
        return ""
    tree = LexborHTMLParser(html)
    tree.strip_tags(["script", "style", "noscript", "template"])
    node = tree.body or tree.root
    if node is None:
        return ""
    return normalize_whitespace(node.text(separator=""))


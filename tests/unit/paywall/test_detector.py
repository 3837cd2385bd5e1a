"""
Tests for soft-paywall text detection and the diagnostic signal check.
"""

import pytest
from bs4 import BeautifulSoup

from pagelift.paywall import (
    detect_paywall_in_text,
    detect_paywall_signals,
    get_site_paywall_selectors,
    is_known_paywalled_site,
)
from tests.helpers import prose


@pytest.mark.unit
class TestTextDetection:
    """Allowlist-gated keyword detection used by the pipeline."""

    def test_known_site_with_marker(self):
        text = prose(300) + " Subscribe now to continue reading."

        result = detect_paywall_in_text(text, "https://www.nytimes.com/2024/01/05/world/story.html")

        assert result.is_paywalled
        assert result.matched_pattern == "subscribe now"

    def test_unknown_site_never_flagged(self):
        text = prose(300) + " Subscribe now to continue reading."

        result = detect_paywall_in_text(text, "https://blog.example.org/post")

        assert not result.is_paywalled
        assert result.matched_pattern is None

    def test_known_site_without_marker(self):
        assert not detect_paywall_in_text(prose(2000), "https://www.wsj.com/articles/x").is_paywalled

    def test_subdomain_of_known_site(self):
        assert is_known_paywalled_site("https://cooking.nytimes.com/recipes/1")
        assert not is_known_paywalled_site("https://notnytimes.com/")

    def test_apostrophe_pattern(self):
        text = "You've reached your free article limit for this month."
        assert detect_paywall_in_text(text, "https://www.wired.com/story/x").is_paywalled

    def test_empty_text(self):
        assert not detect_paywall_in_text("", "https://www.nytimes.com/").is_paywalled


@pytest.mark.unit
class TestPaywallSignals:
    """Diagnostic check collecting one signal of each kind."""

    def test_all_signal_kinds(self):
        html = '<html><body><div class="paywall-overlay">Join</div><p>Short teaser...</p></body></html>'
        soup = BeautifulSoup(html, "lxml")
        text = "Short teaser. Subscribe now..."

        result = detect_paywall_signals(soup, "https://example.com/a", text)

        assert result.is_paywalled
        kinds = [signal.split(":")[0] for signal in result.signals]
        assert kinds == ["short_content", "truncation_marker", "paywall_keyword", "paywall_element"]
        assert result.signals[0] == f"short_content:{len(text)}_chars"

    def test_clean_long_page(self):
        soup = BeautifulSoup("<html><body><article><p>x</p></article></body></html>", "lxml")

        result = detect_paywall_signals(soup, "https://example.com/a", prose(1200))

        assert not result.is_paywalled
        assert result.signals == []

    def test_site_specific_selector(self):
        soup = BeautifulSoup('<html><body><div aria-label="Member-only story"></div></body></html>', "lxml")

        result = detect_paywall_signals(soup, "https://medium.com/@writer/post", prose(1200))

        assert result.signals == ['paywall_element:[aria-label="Member-only story"]']

    def test_site_selectors_lookup(self):
        assert ".wsj-snippet-login" in get_site_paywall_selectors("https://www.wsj.com/articles/x")
        assert get_site_paywall_selectors("https://example.com/") == []

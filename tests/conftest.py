"""
Shared test configuration for pagelift.

Provides configuration, a live Fetcher bound to aioresponses-patched sessions,
and HTML page builders used across the component tests.
"""

from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio

from pagelift.config.config import Config
from pagelift.fetcher.http_client import Fetcher
from tests.helpers import paragraphs

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "network: Tests requiring network access")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Default configuration, isolated from any config file or environment."""
    return Config.model_validate({})


@pytest_asyncio.fixture
async def fetcher(config: Config) -> AsyncGenerator[Fetcher, None]:
    """Fetcher with its own session; pair with ``aioresponses`` in the test."""
    async with Fetcher(config) as client:
        yield client


# ============================================================================
# HTML Builders
# ============================================================================


@pytest.fixture
def make_article_page() -> Callable[..., str]:
    """
    Build a complete article page.

    The page has a navigation header, an ad sidebar (``class="sidebar"``), an
    ``<article>`` body of roughly ``body_length`` characters and a footer.
    """

    def _make(
        body_length: int = 2000,
        title: str = "Rivers Are Changing Course",
        head: str = "",
        body_html: Optional[str] = None,
        extra_body: str = "",
    ) -> str:
        body = body_html if body_html is not None else paragraphs(body_length)
        return f"""<!DOCTYPE html>
<html>
<head>
  <title>{title} | The Daily Planet</title>
  {head}
</head>
<body>
  <header class="site-header"><nav><a href="/">Home</a> <a href="/world">World</a> <a href="/tech">Tech</a></nav></header>
  <div class="sidebar">
    <h3>Sponsored</h3>
    <p>Buy the best widgets on the market today with our exclusive discount code for readers.</p>
  </div>
  <article>
    <h1>{title}</h1>
    {body}
  </article>
  {extra_body}
  <footer class="site-footer"><p>Copyright The Daily Planet. All rights reserved.</p></footer>
</body>
</html>"""

    return _make

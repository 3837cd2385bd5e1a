"""
Tests for metadata reconciliation and the structured-data helpers.
"""

import json

import pytest
from bs4 import BeautifulSoup

from pagelift.metadata import MetaTags, SchemaOrgParser, clean_title, extract_metadata, get_schema_property

URL = "https://www.example.com/news/story"


def page(head: str = "", body: str = "") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


def json_ld(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


@pytest.mark.unit
class TestFieldPrecedence:
    """Each field takes the first non-empty value from its chain."""

    def test_og_title_beats_schema_headline(self):
        head = (
            '<meta property="og:title" content="Open Graph Title">'
            + json_ld({"@type": "NewsArticle", "headline": "Schema Headline"})
            + "<title>Document Title</title>"
        )

        metadata = extract_metadata(page(head), URL)

        assert metadata.title == "Open Graph Title"

    def test_title_falls_back_to_document_title_and_strips_site_name(self):
        head = '<meta property="og:site_name" content="The Daily Planet"><title>Rivers Move | The Daily Planet</title>'

        metadata = extract_metadata(page(head), URL)

        assert metadata.title == "Rivers Move"
        assert metadata.site_name == "The Daily Planet"

    def test_schema_fields(self):
        head = json_ld(
            {
                "@type": "NewsArticle",
                "headline": "Schema Headline",
                "datePublished": "2024-01-05T12:00:00Z",
                "dateModified": "2024-01-06T08:00:00Z",
                "author": [{"name": "Ada Lovelace"}, {"name": "Grace Hopper"}, {"name": "Ada Lovelace"}],
                "publisher": {"@type": "Organization", "name": "Planet Media"},
                "image": {"url": "https://cdn.example.com/hero.jpg"},
            }
        )

        metadata = extract_metadata(page(head), URL)

        assert metadata.title == "Schema Headline"
        assert metadata.author == "Ada Lovelace, Grace Hopper"
        assert metadata.published == "2024-01-05T12:00:00Z"
        assert metadata.modified == "2024-01-06T08:00:00Z"
        assert metadata.site_name == "Planet Media"
        assert metadata.image == "https://cdn.example.com/hero.jpg"
        assert metadata.structured_data["@type"] == "NewsArticle"

    def test_meta_author_beats_schema(self):
        head = '<meta name="author" content="Meta Author">' + json_ld({"@type": "Article", "author": "Schema Author"})

        assert extract_metadata(page(head), URL).author == "Meta Author"

    def test_dom_author_and_time_fallbacks(self):
        body = '<span class="author-name">Jane Roe</span><time datetime="2024-02-01">Feb 1</time>'

        metadata = extract_metadata(page(body=body), URL)

        assert metadata.author == "Jane Roe"
        assert metadata.published == "2024-02-01"

    def test_description_and_image_chains(self):
        head = (
            '<meta property="og:description" content="OG description">'
            '<meta name="twitter:image" content="https://cdn.example.com/tw.jpg">'
        )

        metadata = extract_metadata(page(head), URL)

        assert metadata.description == "OG description"
        assert metadata.image == "https://cdn.example.com/tw.jpg"

    def test_missing_fields_are_none(self):
        metadata = extract_metadata(page(), URL)

        assert metadata.title is None
        assert metadata.author is None
        assert metadata.published is None
        assert metadata.domain == "example.com"


@pytest.mark.unit
class TestFavicon:
    def test_relative_icon_is_absolutized(self):
        head = '<link rel="icon" href="/static/icon.png">'
        assert extract_metadata(page(head), URL).favicon == "https://www.example.com/static/icon.png"

    def test_default_favicon(self):
        assert extract_metadata(page(), URL).favicon == "https://www.example.com/favicon.ico"


@pytest.mark.unit
class TestCleanTitle:
    @pytest.mark.parametrize(
        "title,site,expected",
        [
            ("Rivers Move | The Daily Planet", "The Daily Planet", "Rivers Move"),
            ("The Daily Planet - Rivers Move", "The Daily Planet", "Rivers Move"),
            ("Rivers Move — the daily planet", "The Daily Planet", "Rivers Move"),
            ("Rivers Move", "The Daily Planet", "Rivers Move"),
            ("  Rivers Move  ", None, "Rivers Move"),
        ],
    )
    def test_clean_title(self, title, site, expected):
        assert clean_title(title, site) == expected


@pytest.mark.unit
class TestStructuredData:
    def test_primary_block_prefers_article_types(self):
        soup = BeautifulSoup(
            page(
                json_ld(
                    [
                        {"@type": "BreadcrumbList", "name": "crumbs"},
                        {"@type": ["Thing", "BlogPosting"], "headline": "Post"},
                    ]
                )
            ),
            "lxml",
        )

        assert SchemaOrgParser.parse(soup)["headline"] == "Post"

    def test_invalid_block_is_skipped(self):
        head = '<script type="application/ld+json">{not json</script>' + json_ld({"@type": "Article", "name": "Ok"})
        soup = BeautifulSoup(page(head), "lxml")

        assert SchemaOrgParser.parse(soup)["name"] == "Ok"

    def test_get_schema_property_paths(self):
        data = {"author": {"@type": "Person", "name": "Ada"}, "keywords": ["a", "b"], "wordCount": 900}

        assert get_schema_property(data, "author") == "Ada"
        assert get_schema_property(data, "author.name") == "Ada"
        assert get_schema_property(data, "keywords") == "a, b"
        assert get_schema_property(data, "wordCount") == "900"
        assert get_schema_property(data, "missing.path") is None
        assert get_schema_property(None, "author") is None

    def test_meta_tags_first_occurrence_wins(self):
        soup = BeautifulSoup(
            page('<meta name="Author" content="First"><meta name="author" content="Second">'), "lxml"
        )

        assert MetaTags(soup).name("AUTHOR") == "First"

from .markdown_formatter import ArticleConverter, dedupe_article_image, format_article, html_to_markdown

__all__ = ["ArticleConverter", "dedupe_article_image", "format_article", "html_to_markdown"]

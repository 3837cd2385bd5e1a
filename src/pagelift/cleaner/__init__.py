from .html_cleaner import HtmlCleaner, get_link_density
from .site_config import CaptionConfig, SiteConfig, get_site_config, get_site_config_for_url, load_site_configs

__all__ = [
    "CaptionConfig",
    "HtmlCleaner",
    "SiteConfig",
    "get_link_density",
    "get_site_config",
    "get_site_config_for_url",
    "load_site_configs",
]

"""Browser-backed fetching and rendering."""

from signed_url_audit.browser.engine import BrowserEngine
from signed_url_audit.browser.fetcher import ContentFetcher
from signed_url_audit.browser.renderer import PageRenderer

__all__ = ["BrowserEngine", "ContentFetcher", "PageRenderer"]

"""
Listener Module
Callbacks notified of the outcome of every processed page
"""

from typing import List
import logging

from .models import CrawlerRequest

logger = logging.getLogger(__name__)


class PageParseListener:
    """Base listener; both callbacks do nothing"""

    def on_success(self, request: CrawlerRequest, child_requests: List[CrawlerRequest]):
        pass

    def on_error(self, request: CrawlerRequest, message: str):
        pass


class LoggingPageParseListener(PageParseListener):

    def on_success(self, request: CrawlerRequest, child_requests: List[CrawlerRequest]):
        logger.info(f"Parsed {request.url}: {len(child_requests)} child requests")

    def on_error(self, request: CrawlerRequest, message: str):
        logger.warning(f"Failed to parse {request.url}: {message}")

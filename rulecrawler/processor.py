"""
Generic Page Processor
Single entry point the crawler calls for every fetched page
"""

from typing import Dict, List, Any, Optional, Tuple
import logging

from .captcha import CaptchaIdentificationProxy
from .config_manager import RuleStore
from .cookie_store import CookieStore
from .errors import RuleConfigError
from .listener import LoggingPageParseListener
from .models import Page, PageParseRegion, CrawlerRequest, ProcessResult, ProcessStatus
from .recovery import FailureRecoveryCoordinator
from .rule_parser import RuleParser
from .settings import Settings, SiteConfig

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "downloaded page is not the expected page"
EXTRACTION_FAILED_MESSAGE = "page parsing failed"


class GenericPageProcessor:
    """
    Validates a fetched page against its page rules, extracts every region
    and collects child requests.

    Pages that fail validation are reported and handed to recovery (captcha
    refresh, stale cookie removal). Any error raised while extracting is
    logged and reported; it never escapes `process`.
    """

    def __init__(self, rule_store, resolver=None, listener=None, captcha_proxy=None,
                 cookie_store=None, site: Optional[SiteConfig] = None):
        self.rule_store = rule_store
        self.rule_parser = RuleParser(resolver)
        self.listener = listener
        self.recovery = FailureRecoveryCoordinator(captcha_proxy, cookie_store)
        self.site = site or SiteConfig()

    @classmethod
    def from_settings(cls, settings: Settings, listener=None) -> "GenericPageProcessor":
        """Wire a processor from settings, loading rules from `settings.rules_dir`"""
        rule_store = RuleStore(settings.rules_dir)
        rule_store.load_directory()
        return cls(
            rule_store=rule_store,
            listener=listener or LoggingPageParseListener(),
            captcha_proxy=CaptchaIdentificationProxy(settings.captcha_endpoint,
                                                     timeout=settings.captcha_timeout),
            cookie_store=CookieStore(settings.cookie_file),
        )

    def process(self, page: Page) -> ProcessResult:
        """
        Process one fetched page

        Returns:
            SUCCESS with the region output and child requests,
            VALIDATION_FAILED when the page is not the expected one,
            EXTRACTION_FAILED when rules could not be applied
        """
        request = page.request
        try:
            page_info = self.rule_store.find_page_info(request.url)
            if page_info is None:
                raise RuleConfigError(f"No page rules match {request.url}")
            valid = self.rule_parser.page_validated(page, page_info.validation_rule)
        except Exception as e:
            return self._extraction_failed(request, e)

        if not valid:
            logger.warning(f"Page {request.url} failed validation")
            self._notify_error(request, VALIDATION_FAILED_MESSAGE)
            self.recovery.recover(request, page.raw_text)
            return ProcessResult(ProcessStatus.VALIDATION_FAILED, reason=VALIDATION_FAILED_MESSAGE)

        try:
            fields, child_requests = self._extract(page)
        except Exception as e:
            return self._extraction_failed(request, e)

        page.fields = fields
        self._notify_success(request, child_requests)
        return ProcessResult(ProcessStatus.SUCCESS, fields=fields, child_requests=child_requests)

    def _extract(self, page: Page) -> Tuple[Dict[str, Any], List[CrawlerRequest]]:
        fields = {}
        child_requests = []
        for region in self.get_regions(page.url):
            result = self.rule_parser.parse_one_region(page, region, child_requests)
            if result is not None:
                fields[region.name] = result
        logger.debug(f"Extracted {len(fields)} regions and {len(child_requests)} child requests from {page.url}")
        return fields, child_requests

    def get_regions(self, url: str) -> Tuple[PageParseRegion, ...]:
        return tuple(self.rule_store.get_regions(url))

    def _extraction_failed(self, request: CrawlerRequest, error: Exception) -> ProcessResult:
        logger.error(f"Failed to parse {request.url}: {error}")
        self._notify_error(request, EXTRACTION_FAILED_MESSAGE)
        return ProcessResult(ProcessStatus.EXTRACTION_FAILED, reason=str(error))

    def _notify_success(self, request: CrawlerRequest, child_requests: List[CrawlerRequest]):
        if self.listener is None:
            return
        try:
            self.listener.on_success(request, child_requests)
        except Exception as e:
            logger.error(f"Listener on_success failed for {request.url}: {e}")

    def _notify_error(self, request: CrawlerRequest, message: str):
        if self.listener is None:
            return
        try:
            self.listener.on_error(request, message)
        except Exception as e:
            logger.error(f"Listener on_error failed for {request.url}: {e}")

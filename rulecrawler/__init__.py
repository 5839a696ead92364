"""
Rule-driven Page Extraction
Validates fetched pages, extracts region records and derives child requests
from externally configured page rules
"""

from .processor import GenericPageProcessor
from .rule_parser import RuleParser
from .resolver import SelectorExpressionResolver
from .config_manager import RuleStore
from .captcha import CaptchaIdentificationProxy
from .cookie_store import CookieStore
from .listener import PageParseListener, LoggingPageParseListener
from .recovery import FailureRecoveryCoordinator
from .selectors import Context, HtmlContext, JsonContext
from .settings import Settings, SiteConfig
from .errors import RuleCrawlerError, RuleConfigError, ExpressionError
from .models import (
    PageInfo,
    PageParseRegion,
    FieldParseRule,
    UrlParseRule,
    UrlRuleParam,
    CrawlerRequest,
    Page,
    ProcessStatus,
    ProcessResult,
)

__version__ = "1.0.0"

__all__ = [
    "GenericPageProcessor",
    "RuleParser",
    "SelectorExpressionResolver",
    "RuleStore",
    "CaptchaIdentificationProxy",
    "CookieStore",
    "PageParseListener",
    "LoggingPageParseListener",
    "FailureRecoveryCoordinator",
    "Context",
    "HtmlContext",
    "JsonContext",
    "Settings",
    "SiteConfig",
    "RuleCrawlerError",
    "RuleConfigError",
    "ExpressionError",
    "PageInfo",
    "PageParseRegion",
    "FieldParseRule",
    "UrlParseRule",
    "UrlRuleParam",
    "CrawlerRequest",
    "Page",
    "ProcessStatus",
    "ProcessResult",
]

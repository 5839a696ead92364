"""
Models Module
Page rules, crawler requests and the fetched page handed to the processor
"""

import copy
import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Any, Optional, Tuple, Mapping

from .selectors import HtmlContext, JsonContext, parse_html

# Output key every region record is tagged with
DATA_TYPE_KEY = "dataType"

# Request extra holding the ids of the cookies the request was sent with
COOKIE_IDS_EXTRA = "cookieIds"


@dataclass(frozen=True)
class FieldParseRule:
    field_name: str
    rule: str


@dataclass(frozen=True)
class UrlRuleParam:
    param_name: str
    expression: str


@dataclass(frozen=True)
class UrlParseRule:
    rule: str
    method: str = "GET"
    params: Tuple[UrlRuleParam, ...] = ()


@dataclass(frozen=True)
class PageParseRegion:
    """
    Named extraction unit of a page.
    Records produced by the field rules end up under `name` in the page
    output, tagged with `data_type`.
    """
    name: str
    data_type: Optional[str] = None
    select_expression: Optional[str] = None
    field_rules: Tuple[FieldParseRule, ...] = ()
    url_rules: Tuple[UrlParseRule, ...] = ()


@dataclass(frozen=True)
class PageInfo:
    url_pattern: str
    validation_rule: Optional[str] = None
    regions: Tuple[PageParseRegion, ...] = ()


@dataclass(eq=True)
class CrawlerRequest:
    """
    Unit of crawl work: url, method and parameters.
    `params` is stored as a read-only deep copy so requests spawned from the same
    rule never share a mutable mapping.
    """
    url: str
    method: str = "GET"
    params: Mapping[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        self.method = (self.method or "GET").upper()
        self.params = MappingProxyType(copy.deepcopy(dict(self.params or {})))

    def get_extra(self, key: str, default: Any = None) -> Any:
        return self.extras.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'method': self.method,
            'params': dict(self.params),
        }


class Page:
    """
    A fetched document together with the request that produced it.
    The markup and JSON views are parsed lazily, once per page.
    """

    def __init__(self, request: CrawlerRequest, raw_text: str, status_code: int = 200):
        self.request = request
        self.raw_text = raw_text or ""
        self.status_code = status_code
        self.fields: Dict[str, Any] = {}
        self._html = None
        self._json = None

    @property
    def url(self) -> str:
        return self.request.url

    @property
    def html(self) -> HtmlContext:
        if self._html is None:
            self._html = parse_html(self.raw_text)
        return self._html

    @property
    def json(self) -> JsonContext:
        """Raises ValueError when the body is not JSON"""
        if self._json is None:
            self._json = JsonContext(json.loads(self.raw_text))
        return self._json

    def has_json(self) -> bool:
        """True when the body parses as JSON"""
        try:
            self.json
        except ValueError:
            return False
        return True

    def __repr__(self):
        return f"Page(url={self.url!r}, status_code={self.status_code})"


class ProcessStatus(str, Enum):
    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    EXTRACTION_FAILED = "extraction_failed"


@dataclass
class ProcessResult:
    status: ProcessStatus
    fields: Dict[str, Any] = field(default_factory=dict)
    child_requests: List[CrawlerRequest] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ProcessStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'fields': self.fields,
            'child_requests': [r.to_dict() for r in self.child_requests],
            'reason': self.reason,
        }

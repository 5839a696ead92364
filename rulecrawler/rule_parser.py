"""
Rule Parser Module
Applies page rules to a fetched page: validation, region contexts,
node enumeration, field rules and url rules
"""

from typing import Dict, List, Any, Optional, Iterable, Union
import logging

from .models import DATA_TYPE_KEY, Page, CrawlerRequest, FieldParseRule, UrlParseRule, PageParseRegion
from .resolver import SelectorExpressionResolver, JSON_MARKER
from .selectors import Context, JsonContext

logger = logging.getLogger(__name__)

# Select expression that stands for the whole page
DEFAULT_PAGE_SELECTOR = "page"

RegionRecords = Union[Dict[str, Any], Dict[str, Dict[str, Any]]]


class RuleParser:
    """
    Rule-based parser for a single page
    Holds no per-page state, so one instance serves every worker thread
    """

    def __init__(self, resolver=None):
        self.resolver = resolver or SelectorExpressionResolver()

    def page_validated(self, page: Page, validation_expression: Optional[str]) -> bool:
        """
        Check that the downloaded page is the page the rules expect

        Args:
            page: Fetched page
            validation_expression: Expression that must yield something on a good page

        Returns:
            True when no expression is configured or the expression matches
        """
        if not validation_expression or not validation_expression.strip():
            return True

        # A captcha or login page served instead of the JSON response
        if JSON_MARKER in validation_expression.lower() and not page.has_json():
            logger.info(f"Page {page.url} is not JSON, expected content is missing")
            return False

        result = self._evaluate_on_page(page, page.request, validation_expression)
        if result is None:
            return False
        if isinstance(result, Context):
            return result.match()
        return len(str(result)) > 0

    def get_page_region_context(self, page: Page, request: CrawlerRequest,
                                select_expression: Optional[str]) -> Optional[Context]:
        """
        Locate the context of a region inside the page

        Returns:
            The region context, or None when the expression yields no usable context
        """
        result = self._evaluate_on_page(page, request, select_expression)
        if not isinstance(result, Context):
            return None
        if not result.match():
            return None
        return result

    def _evaluate_on_page(self, page: Page, request: CrawlerRequest, expression: Optional[str]) -> Any:
        if not expression or not expression.strip() or expression.strip() == DEFAULT_PAGE_SELECTOR:
            return page.html
        if JSON_MARKER in expression.lower():
            return self.resolver.resolve(request, page.json, expression)
        return self.resolver.resolve(request, page.html, expression)

    @staticmethod
    def get_nodes(context: Context) -> List[Context]:
        """JSON contexts are a single node; markup contexts expand per element"""
        if isinstance(context, JsonContext):
            return [context]
        return list(context.nodes())

    def parse_field_rules(self, context: Context, request: CrawlerRequest,
                          field_rules: Iterable[FieldParseRule],
                          tags: Optional[Dict[str, Any]] = None) -> Optional[RegionRecords]:
        """
        Build one record per node, each carrying `tags` on top of its fields

        Returns:
            The record itself for a single node, a mapping keyed "0".."n-1"
            for several nodes, None when there are no nodes
        """
        field_rules = list(field_rules)
        records = []
        for node in self.get_nodes(context):
            record = {}
            for field_rule in field_rules:
                record[field_rule.field_name] = self._plain(
                    self.resolver.resolve(request, node, field_rule.rule))
            for key, value in (tags or {}).items():
                if key in record:
                    logger.warning(f"Field '{key}' is overwritten by the region tag on {request.url}")
                record[key] = value
            records.append(record)

        if not records:
            return None
        if len(records) == 1:
            return records[0]
        return {str(i): record for i, record in enumerate(records)}

    def parse_url_rules(self, context: Context, request: CrawlerRequest,
                        url_rules: Iterable[UrlParseRule]) -> List[CrawlerRequest]:
        """
        Turn url rules into child requests, in node order then rule order.
        Requests spawned by one rule on one node share the same parameter values.
        """
        url_rules = list(url_rules)
        child_requests = []
        for node in self.get_nodes(context):
            if node is None:
                continue

            for url_rule in url_rules:
                urls = self._plain(self.resolver.resolve(request, node, url_rule.rule))

                params = {}
                for param in url_rule.params:
                    params[param.param_name] = self._plain(
                        self.resolver.resolve(request, node, param.expression))

                if isinstance(urls, (list, tuple, set)):
                    for url in urls:
                        if url is not None:
                            child_requests.append(CrawlerRequest(str(url), url_rule.method, params))
                elif urls is not None:
                    child_requests.append(CrawlerRequest(str(urls), url_rule.method, params))
                else:
                    logger.debug(f"Url rule {url_rule.rule!r} produced no url on {request.url}")
        return child_requests

    def parse_one_region(self, page: Page, region: PageParseRegion,
                         child_requests: List[CrawlerRequest]) -> Optional[RegionRecords]:
        """
        Run the url and field rules of one region

        Args:
            page: Fetched page
            region: Region rules
            child_requests: List the region's child requests are appended to

        Returns:
            Field records of the region, or None when the region has no
            context or no field rules
        """
        request = page.request
        context = self.get_page_region_context(page, request, region.select_expression)
        if context is None:
            logger.debug(f"Region '{region.name}' has no context on {request.url}, skipped")
            return None

        if region.url_rules:
            child_requests.extend(self.parse_url_rules(context, request, region.url_rules))

        if region.field_rules:
            return self.parse_field_rules(context, request, region.field_rules,
                                          tags={DATA_TYPE_KEY: region.data_type})

        return None

    @staticmethod
    def _plain(value: Any) -> Any:
        if isinstance(value, Context):
            return value.value()
        return value

"""
Config Manager Module
Rule store: loads page parse rules from JSON configs and matches them to URLs
"""

import json
import re
import threading
from typing import Dict, List, Any, Optional, Union, Tuple
from pathlib import Path
from datetime import datetime
import logging

from .errors import RuleConfigError
from .models import (
    DATA_TYPE_KEY,
    PageInfo,
    PageParseRegion,
    FieldParseRule,
    UrlParseRule,
    UrlRuleParam,
)

logger = logging.getLogger(__name__)


def _get(data: Dict[str, Any], key: str, alias: str = None, default: Any = None) -> Any:
    """Read a snake_case key, falling back to its camelCase alias"""
    if key in data:
        return data[key]
    if alias and alias in data:
        return data[alias]
    return default


def _as_list(data: Dict[str, Any], key: str, alias: str, where: str) -> List[Any]:
    value = _get(data, key, alias, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise RuleConfigError(f"'{key}' of {where} must be a list")
    return value


class RuleStore:
    """
    Manages page parse rules for the crawler
    Handles loading, saving and URL lookup of page configs
    """

    def __init__(self, config_dir: Union[str, Path, None] = None):
        self.config_dir = Path(config_dir) if config_dir else None
        self._pages: List[Tuple[PageInfo, re.Pattern]] = []
        self._lock = threading.Lock()

    # Loading

    def load_directory(self, config_dir: Union[str, Path, None] = None) -> int:
        """
        Load every *.json rule file of a directory, in file name order

        Returns:
            Number of pages loaded
        """
        config_dir = Path(config_dir) if config_dir else self.config_dir
        if config_dir is None or not config_dir.is_dir():
            raise FileNotFoundError(f"Rules directory not found: {config_dir}")

        loaded = 0
        for config_path in sorted(config_dir.glob("*.json")):
            loaded += self.load_config_from_file(config_path)
        return loaded

    def load_config_from_file(self, config_path: Union[str, Path]) -> int:
        """Load page rules from a JSON file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise RuleConfigError(f"Invalid JSON in {config_path}: {e}") from e

        loaded = self.load_config(config)
        logger.info(f"Loaded {loaded} page configs from {config_path}")
        return loaded

    def load_config(self, config: Union[Dict[str, Any], List[Any]]) -> int:
        """
        Load page rules from a config dictionary

        Args:
            config: {"pages": [...]} or a bare list of page dictionaries

        Returns:
            Number of pages loaded
        """
        pages = config.get('pages') if isinstance(config, dict) else config
        if not isinstance(pages, list):
            raise RuleConfigError("Config must contain a 'pages' list")

        page_infos = [self.parse_page(page) for page in pages]
        for page_info in page_infos:
            self.add_page(page_info)
        return len(page_infos)

    def add_page(self, page_info: PageInfo):
        """Add a page config, replacing any page with the same url pattern"""
        try:
            pattern = re.compile(page_info.url_pattern)
        except re.error as e:
            raise RuleConfigError(f"Invalid url pattern {page_info.url_pattern!r}: {e}") from e

        with self._lock:
            for i, (existing, _) in enumerate(self._pages):
                if existing.url_pattern == page_info.url_pattern:
                    self._pages[i] = (page_info, pattern)
                    logger.info(f"Replaced page config: {page_info.url_pattern}")
                    return
            self._pages.append((page_info, pattern))
        logger.debug(f"Added page config: {page_info.url_pattern} ({len(page_info.regions)} regions)")

    def remove_page(self, url_pattern: str) -> bool:
        with self._lock:
            for i, (existing, _) in enumerate(self._pages):
                if existing.url_pattern == url_pattern:
                    del self._pages[i]
                    logger.info(f"Removed page config: {url_pattern}")
                    return True
        logger.warning(f"Page config '{url_pattern}' not found")
        return False

    # Lookup

    def find_page_info(self, url: str) -> Optional[PageInfo]:
        """
        Find the page config for a URL

        Patterns are searched against the URL. When several match, the longest
        pattern wins and ties go to the page loaded first.
        """
        with self._lock:
            pages = list(self._pages)

        best = None
        for page_info, pattern in pages:
            if pattern.search(url):
                if best is None or len(page_info.url_pattern) > len(best.url_pattern):
                    best = page_info
        return best

    def get_regions(self, url: str) -> Tuple[PageParseRegion, ...]:
        """Regions bound to a URL, in config order"""
        page_info = self.find_page_info(url)
        if page_info is None:
            return ()
        return page_info.regions

    def list_pages(self) -> List[Dict[str, Any]]:
        with self._lock:
            pages = [page_info for page_info, _ in self._pages]
        return [
            {
                'url_pattern': p.url_pattern,
                'validation_rule': p.validation_rule,
                'regions': [r.name for r in p.regions],
            }
            for p in pages
        ]

    # Saving

    def save_config(self, config_path: Union[str, Path]) -> str:
        """
        Save every loaded page config to a JSON file

        Returns:
            Path of the written file
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            pages = [page_info for page_info, _ in self._pages]

        data = {
            'pages': [self.page_to_dict(p) for p in pages],
            'metadata': {
                'saved_at': datetime.now().isoformat(),
                'version': '1.0',
            },
        }
        with open(config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info(f"Configuration saved: {config_path}")
        return str(config_path)

    # Conversion

    @staticmethod
    def parse_page(data: Dict[str, Any]) -> PageInfo:
        """
        Build a PageInfo from its dictionary form

        Raises:
            RuleConfigError: when required keys are missing, region names repeat,
                or a field uses the reserved dataType name
        """
        if not isinstance(data, dict):
            raise RuleConfigError("Page config must be a dictionary")

        url_pattern = _get(data, 'url_pattern', 'urlRgx')
        if not url_pattern:
            raise RuleConfigError("Page config is missing 'url_pattern'")

        regions = []
        names = set()
        for region_data in _as_list(data, 'regions', 'pageParseRegions', url_pattern):
            region = RuleStore._parse_region(region_data, url_pattern)
            if region.name in names:
                raise RuleConfigError(f"Duplicate region '{region.name}' in {url_pattern}")
            names.add(region.name)
            regions.append(region)

        return PageInfo(
            url_pattern=url_pattern,
            validation_rule=_get(data, 'validation_rule', 'pageValidationRule'),
            regions=tuple(regions),
        )

    @staticmethod
    def _parse_region(data: Dict[str, Any], url_pattern: str) -> PageParseRegion:
        if not isinstance(data, dict):
            raise RuleConfigError(f"Region of {url_pattern} must be a dictionary")
        name = data.get('name')
        if not name:
            raise RuleConfigError(f"Region of {url_pattern} is missing 'name'")
        if name == DATA_TYPE_KEY:
            raise RuleConfigError(f"Region name '{DATA_TYPE_KEY}' is reserved")

        where = f"region '{name}'"
        field_rules = []
        for rule in _as_list(data, 'field_rules', 'fieldParseRules', where):
            field_name = _get(rule, 'field_name', 'fieldName')
            if not field_name or not rule.get('rule'):
                raise RuleConfigError(f"Field rule of {where} needs 'field_name' and 'rule'")
            if field_name == DATA_TYPE_KEY:
                raise RuleConfigError(f"Field name '{DATA_TYPE_KEY}' is reserved ({where})")
            field_rules.append(FieldParseRule(field_name=field_name, rule=rule['rule']))

        url_rules = []
        for rule in _as_list(data, 'url_rules', 'urlParseRules', where):
            if not rule.get('rule'):
                raise RuleConfigError(f"Url rule of {where} needs 'rule'")
            params = []
            for param in _as_list(rule, 'params', 'urlRuleParams', where):
                param_name = _get(param, 'param_name', 'paramName')
                if not param_name or not param.get('expression'):
                    raise RuleConfigError(f"Url param of {where} needs 'param_name' and 'expression'")
                params.append(UrlRuleParam(param_name=param_name, expression=param['expression']))
            url_rules.append(UrlParseRule(
                rule=rule['rule'],
                method=(rule.get('method') or 'GET').upper(),
                params=tuple(params),
            ))

        return PageParseRegion(
            name=name,
            data_type=_get(data, 'data_type', 'dataType'),
            select_expression=_get(data, 'select_expression', 'selectExpression'),
            field_rules=tuple(field_rules),
            url_rules=tuple(url_rules),
        )

    @staticmethod
    def page_to_dict(page_info: PageInfo) -> Dict[str, Any]:
        return {
            'url_pattern': page_info.url_pattern,
            'validation_rule': page_info.validation_rule,
            'regions': [
                {
                    'name': region.name,
                    'data_type': region.data_type,
                    'select_expression': region.select_expression,
                    'field_rules': [
                        {'field_name': r.field_name, 'rule': r.rule} for r in region.field_rules
                    ],
                    'url_rules': [
                        {
                            'rule': r.rule,
                            'method': r.method,
                            'params': [
                                {'param_name': p.param_name, 'expression': p.expression}
                                for p in r.params
                            ],
                        }
                        for r in region.url_rules
                    ],
                }
                for region in page_info.regions
            ],
        }

"""Shared fixtures for rulecrawler tests."""

import pytest
from unittest.mock import Mock

from rulecrawler.config_manager import RuleStore
from rulecrawler.listener import PageParseListener
from rulecrawler.models import (
    PageInfo,
    PageParseRegion,
    FieldParseRule,
    UrlParseRule,
    UrlRuleParam,
)


@pytest.fixture
def list_region():
    return PageParseRegion(
        name="list",
        data_type="items",
        select_expression="css(li.item)",
        field_rules=(FieldParseRule("title", "css(span.title).text()"),),
    )


@pytest.fixture
def paging_region():
    return PageParseRegion(
        name="paging",
        data_type="pager",
        select_expression="page",
        url_rules=(
            UrlParseRule(
                rule='constant(["http://x/1","http://x/2"])',
                method="GET",
                params=(UrlRuleParam("page", "constant(1)"),),
            ),
        ),
    )


@pytest.fixture
def rule_store():
    return RuleStore()


@pytest.fixture
def store_with(rule_store):
    """Register a page config for LIST_URL and return the store"""
    def _add(*regions, validation_rule=None, url_pattern=r"example\.com/list"):
        rule_store.add_page(PageInfo(url_pattern, validation_rule, tuple(regions)))
        return rule_store
    return _add


@pytest.fixture
def listener():
    return Mock(spec=PageParseListener)


@pytest.fixture
def captcha_proxy():
    proxy = Mock()
    proxy.recognition.return_value = True
    return proxy


@pytest.fixture
def cookie_store():
    return Mock()

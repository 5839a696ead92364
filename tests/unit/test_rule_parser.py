"""
Unit tests for RuleParser

Covers page validation, region context resolution, node enumeration and
the field and url rule evaluators.
"""

import json

import pytest
from unittest.mock import Mock

from rulecrawler.errors import ExpressionError
from rulecrawler.models import (
    FieldParseRule,
    UrlParseRule,
    UrlRuleParam,
    PageParseRegion,
)
from rulecrawler.rule_parser import RuleParser
from rulecrawler.selectors import HtmlContext, JsonContext, parse_html

from tests.helpers import make_list_html, make_page


JSON_BODY = json.dumps({
    "status": "ok",
    "data": {
        "total": 2,
        "items": [
            {"title": "x", "url": "http://api.example.com/a/1"},
            {"title": "y", "url": "http://api.example.com/a/2"},
        ],
    },
})


class TestPageValidation:

    def setup_method(self):
        self.parser = RuleParser()
        self.page = make_page(make_list_html(["A"]))

    @pytest.mark.parametrize("expression", [None, "", "   "])
    def test_blank_rule_is_always_valid(self, expression):
        assert self.parser.page_validated(make_page("garbage <<<"), expression)

    def test_matching_context_is_valid(self):
        assert self.parser.page_validated(self.page, "css(div.logged-in)")

    def test_non_matching_context_is_invalid(self):
        assert not self.parser.page_validated(self.page, "css(div.captcha)")

    def test_scalar_result_is_valid_when_non_empty(self):
        assert self.parser.page_validated(self.page, "css(div.logged-in).text()")

    def test_no_result_is_invalid(self):
        assert not self.parser.page_validated(self.page, "css(div.captcha).text()")

    def test_empty_string_result_is_invalid(self):
        resolver = Mock()
        resolver.resolve.return_value = ""
        assert not RuleParser(resolver).page_validated(self.page, "anything")

    def test_json_validation(self):
        page = make_page(JSON_BODY, url="http://api.example.com/articles")
        assert self.parser.page_validated(page, "getJSON().jsonPath($.status)")
        assert not self.parser.page_validated(page, "getJSON().jsonPath($.error)")

    def test_json_rule_on_markup_page_is_invalid(self):
        page = make_page("<html><body>please solve the captcha</body></html>")
        assert not self.parser.page_validated(page, "getJSON().jsonPath($.status)")

    def test_malformed_json_rule_still_raises(self):
        page = make_page(JSON_BODY, url="http://api.example.com/articles")
        with pytest.raises(ExpressionError):
            self.parser.page_validated(page, "getJSON().explode()")

    def test_evaluation_errors_propagate(self):
        with pytest.raises(ExpressionError):
            self.parser.page_validated(self.page, "css(div).explode()")


class TestRegionContext:

    def setup_method(self):
        self.resolver = Mock()
        self.parser = RuleParser(self.resolver)
        self.page = make_page(make_list_html(["A", "B"]))

    @pytest.mark.parametrize("expression", [None, "", "  ", "page"])
    def test_whole_page_selectors(self, expression):
        context = self.parser.get_page_region_context(self.page, self.page.request, expression)
        assert context is self.page.html
        self.resolver.resolve.assert_not_called()

    def test_json_marker_uses_json_root(self):
        page = make_page(JSON_BODY)
        self.resolver.resolve.return_value = JsonContext({"a": 1})
        self.parser.get_page_region_context(page, page.request, "GetJson().jsonPath($.data)")
        args = self.resolver.resolve.call_args[0]
        assert isinstance(args[1], JsonContext)
        assert args[1].value()["status"] == "ok"

    def test_other_expressions_use_markup_root(self):
        self.resolver.resolve.return_value = HtmlContext()
        self.parser.get_page_region_context(self.page, self.page.request, "css(li)")
        assert self.resolver.resolve.call_args[0][1] is self.page.html

    def test_non_context_result_is_none(self):
        self.resolver.resolve.return_value = "some text"
        assert self.parser.get_page_region_context(self.page, self.page.request, "css(li).text()") is None

    def test_empty_context_is_none(self):
        self.resolver.resolve.return_value = HtmlContext()
        assert self.parser.get_page_region_context(self.page, self.page.request, "css(table)") is None

    def test_json_marker_on_non_json_page_raises(self):
        with pytest.raises(ValueError):
            self.parser.get_page_region_context(self.page, self.page.request, "getJSON().jsonPath($.a)")


class TestNodes:

    def test_json_context_is_one_node(self):
        context = JsonContext([1, 2, 3])
        assert RuleParser.get_nodes(context) == [context]

    def test_markup_context_expands_per_element(self):
        context = parse_html("<p>a</p><p>b</p><p>c</p>").css("p")
        assert [n.value() for n in RuleParser.get_nodes(context)] == ["a", "b", "c"]

    def test_nodes_are_recomputed_per_call(self):
        context = parse_html("<p>a</p>").css("p")
        assert RuleParser.get_nodes(context) is not RuleParser.get_nodes(context)


class TestFieldRules:

    def setup_method(self):
        self.parser = RuleParser()
        self.rules = [FieldParseRule("title", "css(span.title).text()")]

    def items(self, titles):
        page = make_page(make_list_html(titles))
        return page.request, page.html.css("li.item")

    def test_single_node_returns_flat_record(self):
        request, context = self.items(["A"])
        assert self.parser.parse_field_rules(context, request, self.rules) == {"title": "A"}

    def test_several_nodes_return_indexed_mapping(self):
        request, context = self.items(["A", "B", "C"])
        assert self.parser.parse_field_rules(context, request, self.rules) == {
            "0": {"title": "A"},
            "1": {"title": "B"},
            "2": {"title": "C"},
        }

    def test_no_nodes_returns_none(self):
        request, context = self.items([])
        assert self.parser.parse_field_rules(context, request, self.rules) is None

    def test_tags_added_to_every_record(self):
        request, context = self.items(["A", "B"])
        result = self.parser.parse_field_rules(context, request, self.rules, tags={"dataType": "items"})
        assert result["0"]["dataType"] == "items"
        assert result["1"]["dataType"] == "items"

    def test_tag_overrides_field_of_same_name(self):
        request, context = self.items(["A"])
        rules = self.rules + [FieldParseRule("dataType", "constant(mine)")]
        result = self.parser.parse_field_rules(context, request, rules, tags={"dataType": "items"})
        assert result == {"title": "A", "dataType": "items"}

    def test_context_values_are_rendered(self):
        page = make_page(JSON_BODY)
        context = page.json.json_path("$.data")
        rules = [
            FieldParseRule("titles", "jsonPath($.items[*].title)"),
            FieldParseRule("total", "jsonPath($.total)"),
        ]
        assert self.parser.parse_field_rules(context, page.request, rules) == {
            "titles": ["x", "y"],
            "total": 2,
        }


class TestUrlRules:

    def setup_method(self):
        self.parser = RuleParser()
        self.page = make_page(make_list_html(["A", "B"]))

    def test_collection_yields_one_request_per_url(self):
        rule = UrlParseRule(
            rule='constant(["http://x/1","http://x/2"])',
            method="post",
            params=(UrlRuleParam("page", "constant(1)"),),
        )
        requests = self.parser.parse_url_rules(self.page.html, self.page.request, [rule])
        assert [r.url for r in requests] == ["http://x/1", "http://x/2"]
        assert all(r.method == "POST" for r in requests)
        assert all(dict(r.params) == {"page": 1} for r in requests)

    def test_params_are_independent_read_only_copies(self):
        rule = UrlParseRule(rule='constant(["http://x/1","http://x/2"])',
                            params=(UrlRuleParam("page", "constant(1)"),))
        first, second = self.parser.parse_url_rules(self.page.html, self.page.request, [rule])
        assert first.params is not second.params
        with pytest.raises(TypeError):
            first.params["page"] = 2

    def test_list_params_are_not_shared(self):
        rule = UrlParseRule(rule='constant(["http://x/1","http://x/2"])',
                            params=(UrlRuleParam("ids", "css(li.item span).text()"),))
        first, second = self.parser.parse_url_rules(self.page.html, self.page.request, [rule])
        first.params["ids"].append("changed")
        assert second.params["ids"] == ["A", "B"]

    def test_order_is_node_then_rule(self):
        rules = [
            UrlParseRule(rule="css(a).attr(href).absolute()"),
            UrlParseRule(rule="css(span.title).text().prefix(http://t/)"),
        ]
        context = self.page.html.css("li.item")
        requests = self.parser.parse_url_rules(context, self.page.request, rules)
        assert [r.url for r in requests] == [
            "http://example.com/item/0",
            "http://t/A",
            "http://example.com/item/1",
            "http://t/B",
        ]

    def test_params_evaluated_per_node(self):
        rule = UrlParseRule(
            rule="css(a).attr(href).absolute()",
            params=(UrlRuleParam("title", "css(span.title).text()"),),
        )
        context = self.page.html.css("li.item")
        requests = self.parser.parse_url_rules(context, self.page.request, [rule])
        assert [dict(r.params) for r in requests] == [{"title": "A"}, {"title": "B"}]

    def test_missing_url_produces_no_request(self):
        rule = UrlParseRule(rule="css(a.next).attr(href)")
        assert self.parser.parse_url_rules(self.page.html, self.page.request, [rule]) == []

    def test_json_urls(self):
        page = make_page(JSON_BODY)
        rule = UrlParseRule(rule="jsonPath($.items[*].url)")
        requests = self.parser.parse_url_rules(page.json.json_path("$.data"), page.request, [rule])
        assert [r.url for r in requests] == ["http://api.example.com/a/1", "http://api.example.com/a/2"]


class TestParseOneRegion:

    def setup_method(self):
        self.parser = RuleParser()
        self.page = make_page(make_list_html(["A", "B"]))

    def test_region_collects_records_and_requests(self):
        region = PageParseRegion(
            name="list",
            data_type="items",
            select_expression="css(li.item)",
            field_rules=(FieldParseRule("title", "css(span.title).text()"),),
            url_rules=(UrlParseRule(rule="css(a).attr(href).absolute()"),),
        )
        child_requests = []
        result = self.parser.parse_one_region(self.page, region, child_requests)
        assert result == {
            "0": {"title": "A", "dataType": "items"},
            "1": {"title": "B", "dataType": "items"},
        }
        assert [r.url for r in child_requests] == ["http://example.com/item/0", "http://example.com/item/1"]

    def test_region_without_context_is_skipped(self):
        region = PageParseRegion(
            name="missing",
            select_expression="css(table.none)",
            field_rules=(FieldParseRule("x", "text()"),),
            url_rules=(UrlParseRule(rule="constant(http://x/)"),),
        )
        child_requests = []
        assert self.parser.parse_one_region(self.page, region, child_requests) is None
        assert child_requests == []

    def test_region_without_field_rules_returns_none(self):
        region = PageParseRegion(
            name="links",
            select_expression="page",
            url_rules=(UrlParseRule(rule="constant(http://x/)"),),
        )
        child_requests = []
        assert self.parser.parse_one_region(self.page, region, child_requests) is None
        assert [r.url for r in child_requests] == ["http://x/"]

    @pytest.mark.parametrize("path", ["$.data.nothing", "$.data.missing", "$.data.no_items", "$.data.no_fields"])
    def test_empty_json_region_is_skipped(self, path):
        page = make_page(json.dumps({"data": {"nothing": None, "no_items": [], "no_fields": {}}}))
        region = PageParseRegion(
            name="feed",
            data_type="feed",
            select_expression=f"getJSON().jsonPath({path})",
            field_rules=(FieldParseRule("title", "jsonPath($.title)"),),
            url_rules=(UrlParseRule(rule="constant(http://x/)"),),
        )
        child_requests = []
        assert self.parser.parse_one_region(page, region, child_requests) is None
        assert child_requests == []

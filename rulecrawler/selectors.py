"""
Selectors Module
Contexts: handles on a parsed document fragment that rules are applied to

Two flavours exist. An HtmlContext wraps an ordered list of BeautifulSoup
elements and expands into one node per element. A JsonContext wraps a parsed
JSON value and is always a single atomic node.
"""

import json
import logging
import re
from typing import List, Any, Union

from bs4 import BeautifulSoup
from bs4.element import Tag
from lxml import etree
from lxml import html as lxml_html

from .utils import TextCleaner, collapse

logger = logging.getLogger(__name__)

_PATH_TOKEN = re.compile(r"\.?([^.\[\]]+)|\[(\*|-?\d+|'[^']*'|\"[^\"]*\")\]")


class Context:
    """Base class for HtmlContext and JsonContext"""

    def match(self) -> bool:
        raise NotImplementedError

    def nodes(self) -> List["Context"]:
        raise NotImplementedError

    def texts(self) -> List[str]:
        raise NotImplementedError

    def value(self) -> Any:
        """Plain data for this context, used when a rule yields a context"""
        raise NotImplementedError


class HtmlContext(Context):

    def __init__(self, elements: List[Tag] = None):
        self.elements = list(elements or [])

    def match(self) -> bool:
        return len(self.elements) > 0

    def nodes(self) -> List["HtmlContext"]:
        return [HtmlContext([element]) for element in self.elements]

    def css(self, selector: str) -> "HtmlContext":
        matched = []
        seen = set()
        for element in self.elements:
            for found in element.select(selector):
                if id(found) not in seen:
                    seen.add(id(found))
                    matched.append(found)
        return HtmlContext(matched)

    def xpath(self, query: str) -> Union["HtmlContext", List[Any]]:
        """
        Evaluate an XPath query against each element with lxml.

        Element results come back as an HtmlContext so further steps can
        chain on them. Text, attribute and scalar results (`text()`,
        `@href`, `count(...)`) come back as a list of values; blank text
        nodes are dropped.

        Raises:
            ValueError: the query is not valid XPath
        """
        found = []
        for element in self.elements:
            tree = _to_lxml(element)
            if tree is None:
                continue
            try:
                result = tree.xpath(query)
            except etree.XPathError as e:
                raise ValueError(f"Invalid XPath {query!r}: {e}") from e
            if isinstance(result, list):
                found.extend(result)
            else:
                found.append(result)

        if all(isinstance(item, lxml_html.HtmlElement) for item in found):
            tags = [_to_tag(item) for item in found]
            return HtmlContext([tag for tag in tags if tag is not None])

        values = []
        for item in found:
            if isinstance(item, lxml_html.HtmlElement):
                item = item.text_content()
            if isinstance(item, str):
                item = TextCleaner.normalize_whitespace(item)
                if not item:
                    continue
            values.append(item)
        return values

    def texts(self) -> List[str]:
        return [TextCleaner.normalize_whitespace(e.get_text(" ")) for e in self.elements]

    def outer_html(self) -> List[str]:
        return [str(e) for e in self.elements]

    def attrs(self, name: str) -> List[str]:
        values = []
        for element in self.elements:
            value = element.get(name)
            if value is None:
                continue
            # class and rel come back as lists
            if isinstance(value, list):
                value = " ".join(value)
            values.append(value)
        return values

    def value(self) -> Any:
        return collapse(self.texts())

    def __repr__(self):
        return f"HtmlContext({len(self.elements)} elements)"


class JsonContext(Context):

    def __init__(self, data: Any):
        self.data = data

    def match(self) -> bool:
        if self.data is None:
            return False
        if isinstance(self.data, (str, list, dict)) and len(self.data) == 0:
            return False
        return True

    def nodes(self) -> List["JsonContext"]:
        return [self]

    def texts(self) -> List[str]:
        if self.data is None:
            return []
        return [TextCleaner.stringify(self.data)]

    def value(self) -> Any:
        return self.data

    def json_path(self, path: str) -> "JsonContext":
        """
        Walk a dotted path such as `$.data.items[0].title`.
        `[*]` fans out over a list; the result is then a list of matches.
        Missing keys yield a context holding None.
        """
        path = path.strip()
        if path.startswith("$"):
            path = path[1:]

        current = [self.data]
        fanned_out = False
        position = 0
        while position < len(path):
            token = _PATH_TOKEN.match(path, position)
            if not token or token.end() == position:
                raise ValueError(f"Invalid JSON path: {path!r}")
            position = token.end()
            key, index = token.group(1), token.group(2)
            next_values = []
            for value in current:
                if index == "*" or key == "*":
                    fanned_out = True
                    if isinstance(value, list):
                        next_values.extend(value)
                    elif isinstance(value, dict):
                        next_values.extend(value.values())
                elif index is not None and index[0] in "'\"":
                    if isinstance(value, dict) and index[1:-1] in value:
                        next_values.append(value[index[1:-1]])
                elif index is not None:
                    if isinstance(value, list) and -len(value) <= int(index) < len(value):
                        next_values.append(value[int(index)])
                elif isinstance(value, dict) and key in value:
                    next_values.append(value[key])
            current = next_values

        if fanned_out:
            return JsonContext(current)
        return JsonContext(current[0] if current else None)

    @classmethod
    def from_html(cls, context: HtmlContext) -> "JsonContext":
        """Parse the text of a markup context as JSON"""
        return cls(json.loads(" ".join(e.get_text() for e in context.elements)))

    def __repr__(self):
        return f"JsonContext({type(self.data).__name__})"


def parse_html(raw_html: str) -> HtmlContext:
    return HtmlContext([BeautifulSoup(raw_html or "", 'html.parser')])


def _to_lxml(element: Tag):
    """Re-parse a BeautifulSoup element with lxml, None when nothing parses"""
    markup = str(element)
    if not markup.strip():
        return None
    parser = lxml_html.HTMLParser(encoding='utf-8')
    try:
        if isinstance(element, BeautifulSoup) or element.name == 'html':
            return lxml_html.document_fromstring(markup.encode('utf-8'), parser=parser)
        return lxml_html.fragment_fromstring(markup.encode('utf-8'), parser=parser)
    except etree.ParserError as e:
        logger.debug(f"Skipping element lxml could not parse: {e}")
        return None


def _to_tag(element) -> Tag:
    markup = lxml_html.tostring(element, encoding='unicode', with_tail=False)
    return BeautifulSoup(markup, 'html.parser').find()


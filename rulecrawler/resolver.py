"""
Selector Expression Resolver
Evaluates rule expressions against a context

An expression is a chain of steps joined by dots, for example
`css(ul.list li).css(a).attr(href).absolute()` or
`getJSON().jsonPath($.data.items[*].url)`. Steps either narrow a context
(css, getJSON, jsonPath) or turn it into strings (text, attr, links, ...).
"""

import json
import re
from functools import lru_cache
from typing import List, Any, Optional, Tuple

from .errors import ExpressionError
from .selectors import Context, HtmlContext, JsonContext
from .utils import TextCleaner, URLUtils, collapse
import logging

logger = logging.getLogger(__name__)

# Marker the region resolver looks for to evaluate against the JSON view
JSON_MARKER = "getjson()"

_STEP = re.compile(r"^\s*([A-Za-z_$][\w$]*)\s*\((.*)\)\s*$", re.DOTALL)

# Steps that take one argument keep commas and parentheses in it verbatim
_SINGLE_ARG_STEPS = {'css', '$', 'jsonpath', 'attr', 'prefix', 'suffix', 'constant', 'xpath'}


def _split_top_level(text: str, separator: str) -> List[str]:
    """Split on `separator` outside quotes and parentheses"""
    parts = []
    depth = 0
    quote = None
    current = []
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth < 0:
                raise ExpressionError(f"Unbalanced parentheses in {text!r}", text)
        elif char == separator and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        current.append(char)
    if depth != 0 or quote:
        raise ExpressionError(f"Unterminated expression {text!r}", text)
    parts.append(''.join(current))
    return parts


def _unquote(arg: str) -> str:
    arg = arg.strip()
    if len(arg) >= 2 and arg[0] == arg[-1] and arg[0] in ("'", '"'):
        return arg[1:-1]
    return arg


@lru_cache(maxsize=1024)
def parse_expression(expression: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    """
    Parse an expression into (step name, arguments) pairs

    Raises:
        ExpressionError: on blank or malformed expressions
    """
    if not expression or not expression.strip():
        raise ExpressionError("Empty expression", expression)

    steps = []
    for raw_step in _split_top_level(expression.strip(), '.'):
        match = _STEP.match(raw_step)
        if not match:
            raise ExpressionError(f"Malformed step {raw_step!r}", expression)
        name, raw_args = match.group(1).lower(), match.group(2)
        if not raw_args.strip():
            args = ()
        elif name in _SINGLE_ARG_STEPS:
            args = (_unquote(raw_args),)
        else:
            args = tuple(_unquote(a) for a in _split_top_level(raw_args, ','))
        steps.append((name, args))
    return tuple(steps)


class SelectorExpressionResolver:
    """
    Default expression evaluator.
    Stateless, so one instance can be shared by every worker thread.
    """

    def __init__(self):
        self._steps = {
            'css': self._css,
            '$': self._css,
            'xpath': self._xpath,
            'getjson': self._get_json,
            'jsonpath': self._json_path,
            'text': self._text,
            'html': self._html,
            'attr': self._attr,
            'links': self._links,
            'absolute': self._absolute,
            'regex': self._regex,
            'replace': self._replace,
            'prefix': self._prefix,
            'suffix': self._suffix,
            'constant': self._constant,
            'first': self._identity,
            'all': self._identity,
        }

    def resolve(self, request, context: Context, expression: str) -> Any:
        """
        Evaluate `expression` against `context`

        Returns:
            A Context, a scalar, a list of scalars, or None

        Raises:
            ExpressionError: malformed expression or a step applied to the wrong input
        """
        current: Any = context
        shape = None
        for name, args in parse_expression(expression):
            handler = self._steps.get(name)
            if handler is None:
                raise ExpressionError(f"Unknown step '{name}'", expression)
            try:
                current = handler(request, current, *args)
            except TypeError as e:
                raise ExpressionError(f"Bad arguments for '{name}': {e}", expression) from e
            if name in ('first', 'all'):
                shape = name
        return self._finish(current, shape)

    @staticmethod
    def _finish(current: Any, shape: Optional[str]) -> Any:
        if isinstance(current, Context):
            return current
        if shape == 'all':
            return list(current)
        if shape == 'first':
            return current[0] if current else None
        return collapse(current)

    @staticmethod
    def _strings(current: Any) -> List[Any]:
        if isinstance(current, JsonContext) and isinstance(current.data, list):
            return [TextCleaner.stringify(v) for v in current.data]
        if isinstance(current, Context):
            return current.texts()
        return list(current)

    @staticmethod
    def _require_html(current: Any, step: str) -> HtmlContext:
        if not isinstance(current, HtmlContext):
            raise ExpressionError(f"'{step}' needs a markup context, got {type(current).__name__}")
        return current

    # Steps

    def _css(self, request, current, selector):
        return self._require_html(current, 'css').css(selector)

    def _xpath(self, request, current, query):
        try:
            return self._require_html(current, 'xpath').xpath(query)
        except ValueError as e:
            raise ExpressionError(str(e)) from e

    def _get_json(self, request, current):
        if isinstance(current, JsonContext):
            return current
        try:
            return JsonContext.from_html(self._require_html(current, 'getJSON'))
        except ValueError as e:
            raise ExpressionError(f"Content is not JSON: {e}") from e

    def _json_path(self, request, current, path):
        if not isinstance(current, JsonContext):
            raise ExpressionError(f"'jsonPath' needs a JSON context, got {type(current).__name__}")
        try:
            return current.json_path(path)
        except ValueError as e:
            raise ExpressionError(str(e)) from e

    def _text(self, request, current):
        return self._strings(current)

    def _html(self, request, current):
        if isinstance(current, HtmlContext):
            return current.outer_html()
        return self._strings(current)

    def _attr(self, request, current, name):
        return self._require_html(current, 'attr').attrs(name)

    def _links(self, request, current):
        context = self._require_html(current, 'links')
        base_url = getattr(request, 'url', None)
        hrefs = []
        for element in context.elements:
            if element.name == 'a' and element.get('href') is not None:
                hrefs.append(element['href'])
            hrefs.extend(a['href'] for a in element.select('a[href]'))
        return [URLUtils.absolutize(base_url, h) for h in hrefs if h.strip()]

    def _absolute(self, request, current):
        base_url = getattr(request, 'url', None)
        return [URLUtils.absolutize(base_url, str(v)) for v in self._strings(current)]

    def _regex(self, request, current, pattern, group=None):
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ExpressionError(f"Invalid regex {pattern!r}: {e}") from e
        if group is None:
            group = 1 if compiled.groups else 0
        matches = []
        for text in self._strings(current):
            for match in compiled.finditer(str(text)):
                matches.append(match.group(int(group)))
        return matches

    def _replace(self, request, current, old, new=""):
        return [str(v).replace(old, new) for v in self._strings(current)]

    def _prefix(self, request, current, prefix):
        return [f"{prefix}{v}" for v in self._strings(current)]

    def _suffix(self, request, current, suffix):
        return [f"{v}{suffix}" for v in self._strings(current)]

    def _constant(self, request, current, literal=""):
        try:
            value = json.loads(literal)
        except ValueError:
            value = literal
        if isinstance(value, list):
            return value
        return [value]

    def _identity(self, request, current):
        if isinstance(current, Context):
            return self._strings(current)
        return current

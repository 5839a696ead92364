"""
Errors Module
Exception types raised by the rule store and the expression resolver
"""


class RuleCrawlerError(Exception):
    """Base class for rulecrawler errors"""


class RuleConfigError(RuleCrawlerError):
    """Raised when a page rule configuration is malformed"""


class ExpressionError(RuleCrawlerError):
    """Raised when a selector expression cannot be parsed or applied"""

    def __init__(self, message: str, expression: str = None):
        super().__init__(message)
        self.expression = expression

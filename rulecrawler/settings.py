"""
Settings Module
Runtime configuration read from the environment, plus the static crawl
policy the host crawler reads from the processor
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
)


@dataclass(frozen=True)
class SiteConfig:
    """Crawl policy for the fetcher; the processor itself never reads it"""
    user_agent: str = DEFAULT_USER_AGENT
    headers: Dict[str, str] = field(default_factory=lambda: {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.5',
        'Accept-Encoding': 'gzip, deflate',
        'Connection': 'keep-alive',
    })
    charset: Optional[str] = None
    sleep_time: float = 0.5
    retry_times: int = 3
    timeout: float = 30


@dataclass(frozen=True)
class Settings:
    rules_dir: str = "rules"
    cookie_file: Optional[str] = None
    captcha_endpoint: Optional[str] = None
    captcha_timeout: float = 30
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ

        timeout = environ.get("RULECRAWLER_CAPTCHA_TIMEOUT", "30")
        try:
            captcha_timeout = float(timeout)
        except ValueError:
            logger.warning(f"Invalid RULECRAWLER_CAPTCHA_TIMEOUT {timeout!r}, using 30")
            captcha_timeout = 30

        return cls(
            rules_dir=environ.get("RULECRAWLER_RULES_DIR", "rules"),
            cookie_file=environ.get("RULECRAWLER_COOKIE_FILE") or None,
            captcha_endpoint=environ.get("RULECRAWLER_CAPTCHA_ENDPOINT") or None,
            captcha_timeout=captcha_timeout,
            log_level=environ.get("RULECRAWLER_LOG_LEVEL", "INFO").upper(),
        )

"""
Captcha Module
Client for the captcha recognition service used to refresh a site's captcha
"""

from typing import Optional
import logging

import requests

from .utils import TextCleaner

logger = logging.getLogger(__name__)


class CaptchaIdentificationProxy:
    """
    Sends a rejected page to the captcha recognition service.
    The service fetches and solves the captcha for the page's site and answers
    with {"success": true|false}.
    """

    def __init__(self, endpoint: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: float = 30):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or self._setup_session()

    @staticmethod
    def _setup_session() -> requests.Session:
        """Setup requests session with proper headers"""
        session = requests.Session()
        session.headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json; charset=utf-8',
        })
        return session

    def recognition(self, url: str, raw_body: str) -> bool:
        """
        Ask the service to solve the captcha of `url`

        Args:
            url: URL of the page that failed validation
            raw_body: Raw body of that page

        Returns:
            True when the service reports the captcha as solved
        """
        if not self.endpoint:
            logger.debug(f"No captcha endpoint configured, skipping recognition for {url}")
            return False

        try:
            response = self.session.post(
                self.endpoint,
                json={'url': url, 'body': raw_body},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(f"Captcha recognition request failed for {url}: {e}")
            return False
        except ValueError as e:
            logger.error(f"Captcha service returned invalid JSON for {url}: {e}")
            return False

        solved = bool(payload.get('success')) if isinstance(payload, dict) else False
        if not solved:
            logger.warning(
                f"Captcha not solved for {url}: {TextCleaner.truncate_text(str(payload))}")
        return solved

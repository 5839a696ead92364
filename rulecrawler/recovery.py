"""
Recovery Module
Best-effort recovery after a page fails validation: refresh the site's
captcha and drop the cookies the request was sent with
"""

import logging

from .models import CrawlerRequest, COOKIE_IDS_EXTRA

logger = logging.getLogger(__name__)


class FailureRecoveryCoordinator:

    def __init__(self, captcha_proxy=None, cookie_store=None):
        self.captcha_proxy = captcha_proxy
        self.cookie_store = cookie_store

    def recover(self, request: CrawlerRequest, raw_body: str):
        """Never raises; each action logs its own failure"""
        self._refresh_captcha(request, raw_body)
        self._remove_stale_cookies(request)

    def _refresh_captcha(self, request: CrawlerRequest, raw_body: str):
        if self.captcha_proxy is None:
            return
        try:
            if self.captcha_proxy.recognition(request.url, raw_body):
                logger.info(f"Refreshed captcha for {request.url}")
            else:
                logger.info(f"Captcha refresh did not succeed for {request.url}")
        except Exception as e:
            logger.error(f"Captcha recognition failed for {request.url}: {e}")

    def _remove_stale_cookies(self, request: CrawlerRequest):
        cookie_ids = request.get_extra(COOKIE_IDS_EXTRA)
        if not cookie_ids or self.cookie_store is None:
            return
        if isinstance(cookie_ids, str):
            cookie_ids = {cookie_ids}
        cookie_ids = set(cookie_ids)
        try:
            self.cookie_store.delete_cookies(cookie_ids)
            logger.info(f"Removed stale cookies {sorted(cookie_ids)} after {request.url}")
        except Exception as e:
            logger.error(f"Failed to remove cookies {sorted(cookie_ids)}: {e}")

"""
Cookie Store Module
Keeps the login cookies attached to crawl requests and drops the stale ones
"""

import json
import threading
import uuid
from typing import Dict, List, Any, Optional, Union, Iterable
from pathlib import Path
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class CookieStore:
    """
    Cookies keyed by id, optionally persisted to a JSON file.
    Safe to share between worker threads.
    """

    def __init__(self, cookie_file: Union[str, Path, None] = None):
        self.cookie_file = Path(cookie_file) if cookie_file else None
        self._lock = threading.Lock()
        self._cookies: Dict[str, Dict[str, Any]] = self._load_cookies()

    def _load_cookies(self) -> Dict[str, Dict[str, Any]]:
        """Load cookies from the cookie file"""
        if self.cookie_file and self.cookie_file.exists():
            try:
                with open(self.cookie_file, 'r', encoding='utf-8') as f:
                    return json.load(f).get('cookies', {})
            except Exception as e:
                logger.error(f"Failed to load cookies from {self.cookie_file}: {e}")
        return {}

    def _save_cookies(self):
        """Write cookies back; caller holds the lock"""
        if not self.cookie_file:
            return
        try:
            self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cookie_file, 'w', encoding='utf-8') as f:
                json.dump({
                    'cookies': self._cookies,
                    'last_updated': datetime.now().isoformat(),
                }, f, indent=2, ensure_ascii=False)
        except Exception as e:
            logger.error(f"Failed to save cookies to {self.cookie_file}: {e}")

    def add_cookie(self, domain: str, name: str, value: str, cookie_id: Optional[str] = None) -> str:
        """
        Store a cookie

        Returns:
            The cookie id
        """
        cookie_id = cookie_id or uuid.uuid4().hex
        with self._lock:
            self._cookies[cookie_id] = {
                'id': cookie_id,
                'domain': domain,
                'name': name,
                'value': value,
                'created_at': datetime.now().isoformat(),
            }
            self._save_cookies()
        return cookie_id

    def get_cookies(self, domain: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            cookies = [dict(c) for c in self._cookies.values()]
        if domain:
            cookies = [c for c in cookies if c.get('domain') == domain]
        return cookies

    def delete_cookies(self, cookie_ids: Iterable[str]) -> int:
        """
        Delete cookies by id; unknown ids are ignored

        Returns:
            Number of cookies removed
        """
        removed = 0
        with self._lock:
            for cookie_id in set(cookie_ids):
                if self._cookies.pop(cookie_id, None) is not None:
                    removed += 1
            if removed:
                self._save_cookies()
        logger.info(f"Removed {removed} stale cookies")
        return removed

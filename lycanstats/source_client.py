from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

RETRY_STATUS = (429, 500, 502, 503, 504)
STATS_LIST_MARKER = "StatsList.json"


@dataclass
class SessionFileClient:
    """Downloads the stats list and the per-session match-log files."""

    timeout_s: int = 30
    retries: int = 3
    backoff_s: float = 0.6
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self) -> None:
        self.session.headers.update({"accept": "application/json"})

    def get_json(self, url: str) -> Any:
        last_err: Optional[Exception] = None
        for attempt in range(self.retries):
            try:
                resp = self.session.get(url, timeout=self.timeout_s)
                if resp.status_code in RETRY_STATUS:
                    last_err = RuntimeError(f"HTTP {resp.status_code} for {url}")
                    time.sleep(self.backoff_s * (attempt + 1))
                    continue
                resp.raise_for_status()
                return resp.json()
            except (requests.RequestException, ValueError) as exc:
                last_err = exc
                time.sleep(self.backoff_s * (attempt + 1))

        raise RuntimeError(f"Failed after {self.retries} attempts. Last error: {last_err}")

    def fetch_stats_list(self, stats_list_url: str) -> List[str]:
        """Session-file URLs listed at ``stats_list_url``, minus the list itself."""
        urls = self.get_json(stats_list_url)
        if not isinstance(urls, list):
            raise RuntimeError(f"Unexpected stats list shape: {type(urls).__name__}")
        logger.info(f"Found {len(urls)} files in stats list")
        game_log_urls = [u for u in urls if isinstance(u, str) and STATS_LIST_MARKER not in u]
        logger.info(f"Found {len(game_log_urls)} game log files to process")
        return game_log_urls

    def fetch_game_log(self, url: str) -> Dict[str, Any]:
        data = self.get_json(url)
        if not isinstance(data, dict):
            raise RuntimeError(f"Unexpected game log shape from {url}")
        logger.debug(f"Fetched {url.rsplit('/', 1)[-1]} with {len(data.get('GameStats') or [])} games")
        return data

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any

import httpx
from django.conf import settings
from django.core.cache import cache

from toll_pricing.exceptions import BatchDecodeError, ExternalServiceError

logger = logging.getLogger(__name__)


class JsonSourceClient:
    """Fetches published plaza lists and rate tables from agency endpoints.

    One attempt per fetch unless the caller asks for retries.
    """

    def __init__(self, retry_count: int = 0) -> None:
        self.timeout = settings.SOURCE_TIMEOUT_SECONDS
        self.retry_count = max(0, retry_count)
        self.user_agent = settings.SOURCE_USER_AGENT

    def fetch(self, url: str) -> Any:
        cache_key = self._cache_key(url)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        for attempt in range(self.retry_count + 1):
            try:
                response = httpx.get(
                    url,
                    timeout=self.timeout,
                    headers={"Accept": "application/json", "User-Agent": self.user_agent},
                    follow_redirects=True,
                )
                response.raise_for_status()
                payload = self._parse_response(response)
                cache.set(cache_key, payload, timeout=settings.SOURCE_CACHE_TTL_SECONDS)
                return payload
            except httpx.HTTPError as exc:
                if attempt >= self.retry_count:
                    raise ExternalServiceError(f"Source request failed: {url}") from exc
                logger.warning(
                    "source_request_retry", extra={"url": url, "attempt": attempt + 1}
                )
                time.sleep(0.3 * (attempt + 1))

        raise ExternalServiceError(f"Source request failed: {url}")

    @staticmethod
    def _cache_key(url: str) -> str:
        digest = hashlib.sha256(url.encode()).hexdigest()
        return f"source:{digest}"

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BatchDecodeError("Source response is not valid JSON") from exc

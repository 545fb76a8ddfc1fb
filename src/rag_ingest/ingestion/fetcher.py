"""HTTP fetching with exponential backoff and throttling detection.

Some origins answer an over-eager JSON client with an HTML challenge page
and a ``200`` status. A JSON request that comes back as anything other
than JSON is therefore treated like a non-2xx status: a transient failure
that is retried after a backoff delay.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from rag_ingest.exceptions import FetchError, RetryError
from rag_ingest.ingestion.retry import RetryPolicy

logger = logging.getLogger(__name__)

_JSON_TYPES = ("application/json", "+json")


def _is_transient(exc: Exception) -> bool:
    return isinstance(exc, FetchError) and exc.transient


class RateLimitedFetcher:
    """Fetch URLs, retrying transient failures with exponential backoff.

    Parameters
    ----------
    max_attempts:
        Total attempts per URL, the first one included.
    base_delay:
        Wait before the first retry; doubled on every following retry.
    timeout:
        Per-request timeout in seconds (``None`` waits forever).
    session:
        Optional pre-configured ``requests.Session``.
    user_agent:
        ``User-Agent`` header sent with every request.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 5,
        base_delay: float = 10.0,
        timeout: float | None = 60.0,
        session: requests.Session | None = None,
        user_agent: str = "rag-ingest/0.1",
    ) -> None:
        self.policy = RetryPolicy.exponential_backoff(
            max_attempts, base_delay, is_retryable=_is_transient
        )
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", user_agent)

    # -- public API -----------------------------------------------------------

    def fetch(self, url: str, *, expect_json: bool = False) -> bytes:
        """Return the body of *url*.

        Raises
        ------
        FetchError
            With ``permanent=True`` once every attempt has failed.
        """
        try:
            return self.policy.call(
                lambda: self._fetch_once(url, expect_json=expect_json),
                label=f"GET {url}",
            )
        except RetryError as exc:
            raise FetchError(
                str(exc), url=url, permanent=True, attempts=exc.attempts
            ) from exc.last_error

    def fetch_json(self, url: str) -> Any:
        """Fetch *url* and decode its JSON body (same retry semantics)."""

        def _attempt() -> Any:
            body = self._fetch_once(url, expect_json=True)
            try:
                return json.loads(body)
            except ValueError as exc:
                raise FetchError(f"Malformed JSON from {url}: {exc}", url=url) from exc

        try:
            return self.policy.call(_attempt, label=f"GET {url}")
        except RetryError as exc:
            raise FetchError(
                str(exc), url=url, permanent=True, attempts=exc.attempts
            ) from exc.last_error

    # -- helpers --------------------------------------------------------------

    def _fetch_once(self, url: str, *, expect_json: bool) -> bytes:
        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(f"Network error for {url}: {exc}", url=url) from exc

        if not 200 <= resp.status_code < 300:
            raise FetchError(f"HTTP {resp.status_code} for {url}", url=url)

        if expect_json:
            ctype = resp.headers.get("content-type", "").split(";")[0].strip().lower()
            if not ctype.endswith(_JSON_TYPES):
                # HTML where JSON was expected: the origin is throttling us.
                raise FetchError(
                    f"Expected JSON from {url}, got {ctype or 'no content-type'}", url=url
                )

        logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.content

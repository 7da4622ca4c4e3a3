"""HTTP client for the remote task API (health probe and batch sync)."""

import threading
from typing import Any

import requests

from ..config import Config


class RemoteClient:
    """HTTP client for the remote authority's sync API.

    Two endpoints are used: ``GET /health`` (liveness) and
    ``POST /sync/batch`` (batch reconciliation).  Sessions are kept per
    thread because calls arrive from ``asyncio.to_thread`` workers.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.api_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers.update({"Accept": "application/json"})
        return session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def check_health(self, timeout: float | None = None) -> dict[str, Any]:
        """
        Call the liveness endpoint.

        Raises:
            requests.RequestException: On network failure, timeout or non-2xx.
        """
        response = self._get_session().get(
            self._url("health"),
            timeout=timeout or self.config.probe_timeout,
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return {}

    def post_batch(
        self, payload: dict[str, Any], timeout: float | None = None
    ) -> Any:
        """
        Submit one batch request and return the decoded JSON body.

        Raises:
            requests.RequestException: On network failure, timeout or non-2xx.
            ValueError: If the response body is not JSON.
        """
        response = self._get_session().post(
            self._url("sync/batch"),
            json=payload,
            timeout=timeout or self.config.batch_timeout,
        )
        response.raise_for_status()
        return response.json()

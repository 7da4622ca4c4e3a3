"""Reachability probe for the remote authority."""

from __future__ import annotations

import logging

import requests

from task_sync.core.client import RemoteClient

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


class ConnectivityGate:
    """Answer "is the remote authority reachable right now?".

    A probe is a single ``GET /health`` bounded by *timeout*.  Any network
    failure, timeout or non-2xx status closes the gate.

    Args:
        client: Remote API client.
        timeout: Probe timeout in seconds.
    """

    def __init__(
        self, client: RemoteClient, timeout: float = DEFAULT_PROBE_TIMEOUT
    ) -> None:
        self.client = client
        self.timeout = timeout

    def probe(self) -> bool:
        try:
            self.client.check_health(timeout=self.timeout)
        except requests.RequestException as exc:
            logger.info("Remote authority unreachable: %s", exc)
            return False
        return True

"""Tests for task_sync.sync.connectivity.ConnectivityGate."""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from task_sync.sync.connectivity import DEFAULT_PROBE_TIMEOUT, ConnectivityGate


def test_open_when_health_succeeds():
    client = MagicMock()
    client.check_health.return_value = {"status": "ok"}

    gate = ConnectivityGate(client, timeout=1.5)

    assert gate.probe() is True
    client.check_health.assert_called_once_with(timeout=1.5)


@pytest.mark.parametrize(
    "exc",
    [
        requests.ConnectionError("refused"),
        requests.Timeout("too slow"),
        requests.HTTPError("503 Server Error"),
    ],
)
def test_closed_on_request_failure(exc, caplog):
    client = MagicMock()
    client.check_health.side_effect = exc

    with caplog.at_level(logging.INFO, logger="task_sync.sync.connectivity"):
        assert ConnectivityGate(client).probe() is False
    assert "unreachable" in caplog.text


def test_default_timeout():
    gate = ConnectivityGate(MagicMock())
    assert gate.timeout == DEFAULT_PROBE_TIMEOUT == 5.0

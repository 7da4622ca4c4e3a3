from unittest.mock import Mock, patch

import pytest
import requests

from task_sync.config import Config
from task_sync.core.client import RemoteClient


def _response(status=200, body=None, json_error=False) -> Mock:
    response = Mock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} Server Error"
        )
    else:
        response.raise_for_status.return_value = None
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body if body is not None else {}
    return response


# RemoteClient construction
def test_base_url_strips_trailing_slash():
    client = RemoteClient(Config(api_url="http://sync.example.com/api/"))
    assert client.base_url == "http://sync.example.com/api"


def test_session_creation_secure(mock_config):
    """Session verifies SSL and asks for JSON."""
    client = RemoteClient(mock_config)
    assert client.session.verify
    assert client.session.headers["Accept"] == "application/json"


def test_session_creation_insecure():
    client = RemoteClient(
        Config(api_url="https://sync.example.com/api", insecure=True)
    )
    assert not client.session.verify


def test_session_is_reused_within_thread(mock_config):
    client = RemoteClient(mock_config)
    assert client.session is client.session


# check_health
@patch("task_sync.core.client.requests.Session.get")
def test_check_health_success(mock_get, mock_config):
    mock_get.return_value = _response(body={"status": "ok"})

    client = RemoteClient(mock_config)
    assert client.check_health() == {"status": "ok"}

    call_args = mock_get.call_args
    assert call_args[0][0] == "http://sync.example.com/api/health"
    assert call_args[1]["timeout"] == mock_config.probe_timeout


@patch("task_sync.core.client.requests.Session.get")
def test_check_health_non_json_body(mock_get, mock_config):
    """A 2xx health response without JSON is still healthy."""
    mock_get.return_value = _response(json_error=True)

    client = RemoteClient(mock_config)
    assert client.check_health(timeout=1.5) == {}
    assert mock_get.call_args[1]["timeout"] == 1.5


@patch("task_sync.core.client.requests.Session.get")
def test_check_health_http_error(mock_get, mock_config):
    mock_get.return_value = _response(status=503)

    client = RemoteClient(mock_config)
    with pytest.raises(requests.HTTPError):
        client.check_health()


# post_batch
@patch("task_sync.core.client.requests.Session.post")
def test_post_batch_success(mock_post, mock_config):
    body = {"processed_items": [], "server_timestamp": "2026-01-01T00:00:00Z"}
    mock_post.return_value = _response(body=body)

    client = RemoteClient(mock_config)
    payload = {"items": [], "client_timestamp": "2026-01-01T00:00:00Z"}
    assert client.post_batch(payload) == body

    call_args = mock_post.call_args
    assert call_args[0][0] == "http://sync.example.com/api/sync/batch"
    assert call_args[1]["json"] == payload
    assert call_args[1]["timeout"] == mock_config.batch_timeout


@patch("task_sync.core.client.requests.Session.post")
def test_post_batch_timeout_propagates(mock_post, mock_config):
    mock_post.side_effect = requests.Timeout("read timed out")

    client = RemoteClient(mock_config)
    with pytest.raises(requests.Timeout):
        client.post_batch({"items": []}, timeout=0.5)


@patch("task_sync.core.client.requests.Session.post")
def test_post_batch_invalid_json(mock_post, mock_config):
    mock_post.return_value = _response(json_error=True)

    client = RemoteClient(mock_config)
    with pytest.raises(ValueError):
        client.post_batch({"items": []})

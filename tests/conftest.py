"""
Shared fixtures for the XML watcher tests
"""
import json
import logging

import httpx
import pytest

from xmlwatcher.utils.config import WatchConfig

WEBHOOK_URL = "http://hook.test/notify"


@pytest.fixture(autouse=True)
def quiet_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="xmlwatcher")
    yield


@pytest.fixture
def make_config(tmp_path):
    """Config factory rooted at tmp_path with a short settle delay"""
    def factory(**overrides):
        options = {
            "webhook_url": WEBHOOK_URL,
            "watch_dir": tmp_path,
            "settle_delay": 0.01,
            "http_timeout": 5.0,
            "suppression_ttl": 2.0,
        }
        options.update(overrides)
        return WatchConfig(**options)
    return factory


class RecordingWebhook:
    """Fake webhook endpoint that records requests and replies with a canned response"""

    def __init__(self, status_code=200, headers=None, body=b"", error=None):
        self.status_code = status_code
        self.headers = headers or {}
        self.body = body
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, headers=self.headers, content=self.body)

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def webhook():
    return RecordingWebhook()

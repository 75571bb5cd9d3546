"""Shared pytest fixtures for media_dispatch tests.

HTTP is stubbed with an in-memory session, and time with a fake clock
whose cancellation event advances the clock instead of sleeping.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Optional

import pytest
import requests

from media_dispatch.dispatch_config import DispatchConfig
from media_dispatch.utils.model_registry import ModelRegistry

KIE_BASE_URL = "https://kie.test/api/v1"
GEMINI_BASE_URL = "https://gemini.test/v1beta"

# ============================================================================
# HTTP Fakes
# ============================================================================


class FakeResponse:
    """Minimal requests.Response stand-in."""

    def __init__(
        self,
        status_code: int = 200,
        body: Any = None,
        text: Optional[str] = None,
        content: bytes = b"",
        headers: Optional[dict] = None,
    ):
        self.status_code = status_code
        self._body = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.content = content
        self.headers = headers or {}

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Replays queued responses and records every call.

    With a clock and latency, each request takes that much fake time, and a
    request slower than its timeout raises ReadTimeout after the timeout.
    """

    def __init__(self, responses=None, downloads=None, clock=None, latency: float = 0.0):
        self.responses = list(responses or [])
        self.downloads = dict(downloads or {})
        self.calls = []
        self.closed = False
        self._clock = clock
        self._latency = latency

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def request(self, method, url, headers=None, json=None, params=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers or {},
                "json": json,
                "params": params,
                "timeout": timeout,
            }
        )
        if self._clock is not None and self._latency:
            if timeout is not None and self._latency > timeout:
                self._clock.advance(timeout)
                raise requests.exceptions.ReadTimeout(f"Read timed out. (read timeout={timeout})")
            self._clock.advance(self._latency)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, timeout=None):
        self.calls.append({"method": "DOWNLOAD", "url": url, "timeout": timeout})
        item = self.downloads[url]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True

    def calls_to(self, method: str) -> list:
        return [c for c in self.calls if c["method"] == method]


def envelope(data: Any = None, code: int = 200, msg: str = "success") -> FakeResponse:
    """KIE-style {code, msg, data} response."""
    return FakeResponse(200, {"code": code, "msg": msg, "data": data})


def kie_state(state: str, task_id: str = "task-1", **fields) -> FakeResponse:
    data = {"taskId": task_id, "state": state}
    data.update(fields)
    return envelope(data)


# ============================================================================
# Time Fakes
# ============================================================================


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEvent:
    """threading.Event stand-in: wait() advances the fake clock instead of sleeping."""

    def __init__(self, clock: FakeClock, set_after_waits: Optional[int] = None):
        self._clock = clock
        self._set = False
        self._set_after_waits = set_after_waits
        self.waits = []

    def is_set(self) -> bool:
        return self._set

    def set(self) -> None:
        self._set = True

    def wait(self, timeout: Optional[float] = None) -> bool:
        self.waits.append(timeout)
        if self._set:
            return True
        if self._set_after_waits is not None and len(self.waits) >= self._set_after_waits:
            self._set = True
            return True
        self._clock.advance(timeout or 0)
        return False


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_response():
    """FakeResponse class, for building ad-hoc responses."""
    return FakeResponse


@pytest.fixture
def kie_envelope():
    return envelope


@pytest.fixture
def kie_status():
    return kie_state


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cancel_event(clock: FakeClock) -> FakeEvent:
    return FakeEvent(clock)


@pytest.fixture
def make_event(clock: FakeClock):
    """Factory for events that get set after a number of waits."""

    def _make(set_after_waits: Optional[int] = None) -> FakeEvent:
        return FakeEvent(clock, set_after_waits=set_after_waits)

    return _make


@pytest.fixture
def session(clock: FakeClock) -> FakeSession:
    return FakeSession(clock=clock)


@pytest.fixture
def make_session(clock: FakeClock):
    """Factory for sessions whose requests take fake time."""

    def _make(latency: float = 0.0) -> FakeSession:
        return FakeSession(clock=clock, latency=latency)

    return _make


@pytest.fixture
def registry() -> ModelRegistry:
    """Registry with test base URLs and the standard default models."""
    return ModelRegistry(
        base_urls={"kie": KIE_BASE_URL, "gemini": GEMINI_BASE_URL},
        default_image_model="nano-banana-pro",
        default_video_model="kling-2-6-text-to-video",
    )


@pytest.fixture
def dispatch_settings() -> SimpleNamespace:
    """Config stand-in with the default polling limits."""
    return SimpleNamespace(request_timeout=30, poll_interval=3.0, max_wait=120.0)


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """Reset the config singleton and point it at a temp ini file.

    Returns a factory: call with ini text (or None) to get a new DispatchConfig.
    """
    for name in (
        "MEDIA_DISPATCH_KIE_BASE_URL",
        "MEDIA_DISPATCH_GEMINI_BASE_URL",
        "MEDIA_DISPATCH_POLL_INTERVAL",
        "MEDIA_DISPATCH_MAX_WAIT",
        "MEDIA_DISPATCH_DEFAULT_IMAGE_MODEL",
        "MEDIA_DISPATCH_DEFAULT_VIDEO_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)

    config_path = tmp_path / "config.ini"
    monkeypatch.setenv("MEDIA_DISPATCH_CONFIG", str(config_path))
    monkeypatch.setattr(DispatchConfig, "_instance", None)

    def _make(ini_text: Optional[str] = None) -> DispatchConfig:
        if ini_text is not None:
            config_path.write_text(ini_text)
        DispatchConfig._instance = None
        return DispatchConfig()

    return _make

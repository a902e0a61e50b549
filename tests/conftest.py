import json
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient

from app.config import Settings
from app.dependencies import get_canvas_service
from app.services.canvas_service import CanvasService
from app.services.customer_directory import CustomerDirectory
from app.services.intercom_service import IntercomService
from app.services.recommendation_service import RecommendationService
from app.services.result_cache import ResultCache


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """Queue-backed stand-in for requests.Session; records every call."""

    def __init__(self, responses: Optional[List[Any]] = None, gate: Optional[threading.Event] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        # When set, every call waits for the gate before answering
        self.gate = gate

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.gate is not None and not self.gate.wait(timeout=5):
            raise AssertionError("gate never opened")
        if not self.responses:
            raise AssertionError("no more responses queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)


class InlineExecutor:
    """Runs submitted work on the calling thread, so jobs finish before the request returns."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


SAMPLE_CONVERSATION = {
    "type": "conversation",
    "id": "215",
    "state": "open",
    "title": "<p>Billing question</p>",
    "priority": "not_priority",
    "created_at": 1760870400,
    "updated_at": 1760871000,
    "waiting_since": 1760870900,
    "source": {
        "type": "conversation",
        "id": "src-1",
        "delivered_as": "customer_initiated",
        "body": "<p>Hi, I was charged twice&nbsp;this month.</p>",
        "author": {"type": "user", "email": "jane@customer.com", "name": "Jane"},
    },
    "conversation_parts": {
        "type": "conversation_part.list",
        "conversation_parts": [
            {
                "id": "p1",
                "part_type": "comment",
                "body": "<p>Sorry to hear that!<br>Let me check.</p>",
                "created_at": 1760870500,
                "author": {"type": "admin", "email": "agent@support.com", "name": "Alex"},
            },
            {
                "id": "p2",
                "part_type": "comment",
                "body": "<p>Thanks</p>",
                "created_at": 1760870900,
                "author": {"type": "user", "email": "jane@customer.com", "name": "Jane"},
            },
        ],
    },
}


def make_settings(**overrides: Any) -> Settings:
    values = {
        "intercom_access_token": "ic-token",
        "intercom_client_secret": None,
        "intercom_api_base_url": "https://api.intercom.test",
        "automation_webhook_url": "https://hooks.example.com/webhook/recommend",
    }
    values.update(overrides)
    return Settings(**values)


class Relay:
    """Bundle of isolated collaborators wired the same way as app.dependencies."""

    def __init__(self, settings: Settings, clock: FakeClock, executor=None,
                 webhook_session: Optional[FakeSession] = None):
        self.settings = settings
        self.clock = clock
        self.cache = ResultCache(ttl_seconds=settings.result_ttl_seconds, clock=clock)
        self.intercom_session = FakeSession()
        self.webhook_session = webhook_session or FakeSession()
        self.directory_session = FakeSession()
        self.recommendations = RecommendationService(
            webhook_url=settings.automation_webhook_url,
            cache=self.cache,
            timeout=settings.recommendation_timeout_seconds,
            session=self.webhook_session,
            executor=executor or InlineExecutor(),
        )
        self.service = CanvasService(
            settings=settings,
            cache=self.cache,
            intercom=IntercomService(settings, session=self.intercom_session),
            recommendations=self.recommendations,
            directory=CustomerDirectory(settings, session=self.directory_session),
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def relay_factory(clock):
    def _create(**overrides: Any) -> Relay:
        return Relay(make_settings(**overrides), clock)
    return _create


@pytest.fixture
def relay(relay_factory) -> Relay:
    return relay_factory()


@pytest.fixture
def client(relay):
    from main import app

    app.dependency_overrides[get_canvas_service] = lambda: relay.service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def unreachable() -> requests.ConnectionError:
    return requests.ConnectionError("Connection refused")

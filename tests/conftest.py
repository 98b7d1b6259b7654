from __future__ import annotations

from typing import Any, Callable, Dict, List

import pytest
import requests

from ekokurikulum.core import data_loader
from ekokurikulum.core.models import Student


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str = "") -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers per `action` query param."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Callable[[Dict[str, str]], FakeResponse]] = {}
        self.calls: List[Dict[str, str]] = []
        self.timeouts: List[float] = []

    def on(self, action: str, handler: Callable[[Dict[str, str]], FakeResponse]) -> None:
        self.handlers[action] = handler

    def get(self, url: str, params: Dict[str, str], timeout: float, allow_redirects: bool = True) -> FakeResponse:
        self.calls.append(dict(params))
        self.timeouts.append(timeout)
        handler = self.handlers.get(params["action"])
        if handler is None:
            raise requests.ConnectionError("backend unreachable")
        return handler(params)


@pytest.fixture
def fake_session(monkeypatch) -> FakeSession:
    session = FakeSession()
    monkeypatch.setattr(data_loader, "_get_session", lambda: session)
    return session


@pytest.fixture
def students() -> List[Student]:
    return data_loader.fallback_students()

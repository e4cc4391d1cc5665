import asyncio
import json as jsonlib
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app


class FakeResponse:
    """Just enough of a niquests Response for the upstream client."""

    def __init__(
        self,
        status_code: int = 200,
        json: Any = None,
        text: str | None = None,
        content_type: str | None = None,
    ):
        self.status_code = status_code
        self._json = json
        if text is None and json is not None:
            text = jsonlib.dumps(json)
        self.text = text or ""
        self.content = self.text.encode("utf-8")
        if content_type is None:
            content_type = "application/json" if json is not None else "text/plain"
        self.headers = {"content-type": content_type}

    def json(self):
        if self._json is None:
            return jsonlib.loads(self.text)
        return self._json


class FakeSession:
    """Records every GET and answers from a route table or a handler."""

    def __init__(self, handler: Callable[[str], Any] | None = None, delay: float = 0):
        self.calls: list[dict] = []
        self.routes: dict[str, Any] = {}
        self.handler = handler
        self.delay = delay
        self.closed = False

    def add(self, path_fragment: str, response: Any) -> None:
        self.routes[path_fragment] = response

    async def get(self, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.handler is not None:
            result = self.handler(url)
        else:
            path = url.split("?", 1)[0]
            # longest fragment wins so /tv/1/season/2 beats /tv/1
            matches = sorted(
                (frag for frag in self.routes if path.endswith(frag)),
                key=len,
                reverse=True,
            )
            result = self.routes[matches[0]] if matches else FakeResponse(404, text="not found")

        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


def make_settings(**overrides) -> Settings:
    values = {
        "search_endpoint": "https://tmdb.test/3",
        "tmdb_bearer": "test-token",
        "movie_endpoint": "https://embed.test",
        "request_timeout": 10.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings, fake_session):
    app = create_app(settings, session=fake_session)
    with TestClient(app) as test_client:
        yield test_client

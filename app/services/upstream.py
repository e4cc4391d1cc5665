"""HTTP client for upstream services (TMDB and the embed provider)."""

import asyncio
import logging
import re
from typing import Any, Mapping, Union
from urllib.parse import urlencode

import niquests
from pydantic import BaseModel, ConfigDict

from app.core.errors import (
    ConfigurationError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

JSON_ACCEPT = "application/json"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

_TRAILING_SLASHES = re.compile(r"/+$")
_SEARCH_SUFFIX = re.compile(r"/search$", re.IGNORECASE)


class JsonBody(BaseModel):
    """A parsed JSON upstream response."""

    model_config = ConfigDict(frozen=True)

    data: Any
    status: int = 200


class RawBody(BaseModel):
    """A non-JSON upstream response passed through untouched."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str = "text/plain"
    status: int = 200


UpstreamResult = Union[JsonBody, RawBody]


def normalize_base(raw: str | None) -> str:
    """Trim whitespace, trailing slashes and an accidental ``/search`` suffix."""
    if not raw:
        return ""
    base = _TRAILING_SLASHES.sub("", raw.strip())
    base = _SEARCH_SUFFIX.sub("", base)
    return _TRAILING_SLASHES.sub("", base)


class UpstreamClient:
    """Issue GET requests against one configured upstream base URL.

    Every request runs under a single deadline and is never retried.
    """

    def __init__(
        self,
        name: str,
        base_url: str | None,
        *,
        bearer: str | None = None,
        require_auth: bool = False,
        timeout: float = 10.0,
        proxy: str | None = None,
        session: Any = None,
    ):
        self.name = name
        self.base_url = normalize_base(base_url)
        self._bearer = bearer
        self.require_auth = require_auth
        self.timeout = timeout
        if session is None:
            session = niquests.AsyncSession(retries=0)
            if proxy:
                session.proxies = {"http": proxy, "https": proxy}
        self.session = session

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if self.session is not None:
            await self.session.close()

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def build_url(self, path: str, params: Mapping[str, Any] | None = None) -> str:
        """Build an absolute URL for ``path``, dropping empty query values."""
        if not self.base_url:
            raise ConfigurationError(f"{self.name} base URL is not configured")

        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {
            key: value
            for key, value in (params or {}).items()
            if value is not None and value != ""
        }
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {"Accept": accept}
        if self._bearer:
            headers["Authorization"] = f"Bearer {self._bearer}"
        return headers

    async def fetch(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        accept: str = JSON_ACCEPT,
    ) -> UpstreamResult:
        """GET ``path`` and return a JSON or raw body depending on content type."""
        if self.require_auth and not self._bearer:
            raise ConfigurationError(f"{self.name} bearer credential is not configured")
        url = self.build_url(path, params)

        logger.debug("GET %s/%s", self.name, path.lstrip("/"))
        try:
            response = await asyncio.wait_for(
                self.session.get(
                    url, headers=self._headers(accept), timeout=self.timeout
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, niquests.exceptions.Timeout) as exc:
            logger.warning(
                "%s request to %s timed out after %ss", self.name, path, self.timeout
            )
            raise UpstreamTimeoutError(
                f"{self.name} request timed out after {self.timeout:g}s",
                original_exception=exc,
            ) from exc
        except niquests.exceptions.RequestException as exc:
            logger.error("%s request to %s failed: %s", self.name, path, exc)
            raise UpstreamUnavailableError(
                f"{self.name} request failed: {exc}", original_exception=exc
            ) from exc

        status = response.status_code or 0
        if not 200 <= status < 300:
            body = response.text or ""
            logger.error("%s responded %s for %s", self.name, status, path)
            raise UpstreamError(
                f"{self.name} request failed: {status} {body}".strip(),
                upstream_status=status,
                body=body,
            )

        content_type = response.headers.get("content-type") or "text/plain"
        if "application/json" in content_type.lower():
            try:
                data = response.json()
            except ValueError as exc:
                raise UpstreamError(
                    f"{self.name} returned malformed JSON",
                    upstream_status=status,
                    original_exception=exc,
                ) from exc
            return JsonBody(data=data, status=status)

        return RawBody(
            content=response.content or b"", content_type=content_type, status=status
        )

    async def get_json(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """GET ``path`` and return the decoded JSON document."""
        result = await self.fetch(path, params, accept=JSON_ACCEPT)
        if not isinstance(result, JsonBody):
            raise UpstreamError(
                f"{self.name} returned {result.content_type} instead of JSON",
                upstream_status=result.status,
            )
        return result.data

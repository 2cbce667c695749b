"""Async HTTP client bound to one book source."""

from __future__ import annotations

import logging

import httpx

from .book_source import HttpConfig
from .errors import HttpError
from .rate_limiter import TokenBucket

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


class HttpClient:
    """Resolve URLs against ``base_url`` and fetch them as text.

    Cookies persist for the client's lifetime. When the config carries a rate
    limit, every request first takes a permit from the source's token bucket.
    """

    def __init__(
        self,
        base_url: str,
        config: HttpConfig | None = None,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = config or HttpConfig()
        self.base_url = base_url
        self.config = config

        headers: dict[str, str] = {}
        if user_agent:
            headers["User-Agent"] = user_agent
        headers.update(config.header or {})

        timeout_ms = config.timeout if config.timeout is not None else default_timeout_ms
        self.timeout = timeout_ms / 1000
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=self.timeout,
            cookies=httpx.Cookies(),
            follow_redirects=True,
            transport=transport,
        )
        self.rate_limiter: TokenBucket | None = None
        if config.rate_limit is not None:
            self.rate_limiter = TokenBucket(
                config.rate_limit.max_count, config.rate_limit.fill_duration
            )

    def url_with_base(self, url: str) -> str:
        if url.startswith("http"):
            return url
        if url.startswith("/"):
            return f"{self.base_url}{url}"
        return f"{self.base_url}/{url}"

    async def get(self, url: str) -> str:
        return await self._request("GET", url)

    async def post(self, url: str, body: str | bytes) -> str:
        return await self._request("POST", url, content=body)

    async def aclose(self) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.close()
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: object) -> str:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        full_url = self.url_with_base(url)
        _LOGGER.debug("%s %s", method, full_url)
        try:
            response = await self._client.request(method, full_url, **kwargs)
        except httpx.HTTPError as exc:
            raise HttpError(full_url, cause=exc) from exc

        if response.is_error:
            raise HttpError(full_url, status=response.status_code)
        return _decode_text(response)


def _decode_text(response: httpx.Response) -> str:
    if response.charset_encoding is None:
        return response.content.decode("utf-8", errors="replace")
    return response.text

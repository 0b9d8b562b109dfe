"""Request dispatcher — the raw transport for one audience.

Learn: this is deliberately dumb. It knows a base URL and a timeout and
turns a RequestDescriptor + headers into an HTTP call. It does not know
what a token is. Outcomes are normalized into three cases:
- 2xx → the httpx.Response
- non-2xx → HttpError(status, body)
- no response (connect error, timeout, ...) → NetworkError
"""

from typing import Any, Optional

import httpx
import structlog

from continuum.client.descriptor import RequestDescriptor
from continuum.errors import HttpError, NetworkError

logger = structlog.get_logger()

JSON_CONTENT_TYPE = "application/json"


def decode_body(response: httpx.Response) -> Any:
    """JSON if the body parses, text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestDispatcher:
    """One httpx.AsyncClient bound to one audience's base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def send(
        self, descriptor: RequestDescriptor, headers: dict[str, str]
    ) -> httpx.Response:
        """Perform one HTTP call. Never retries."""
        kwargs: dict[str, Any] = {"headers": dict(headers)}
        if descriptor.files is not None:
            # multipart — httpx writes the boundary content type itself
            kwargs["files"] = descriptor.files
            if descriptor.body is not None:
                kwargs["data"] = descriptor.body
        else:
            kwargs["headers"].setdefault("Content-Type", JSON_CONTENT_TYPE)
            if descriptor.body is not None:
                kwargs["json"] = descriptor.body

        try:
            response = await self._client.request(
                descriptor.method, descriptor.path, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning(
                "continuum.request_timeout",
                audience=descriptor.audience.value,
                method=descriptor.method,
                path=descriptor.path,
            )
            raise NetworkError(f"Request timed out: {descriptor.method} {descriptor.path}") from e
        except httpx.TransportError as e:
            logger.warning(
                "continuum.network_error",
                audience=descriptor.audience.value,
                method=descriptor.method,
                path=descriptor.path,
                error=str(e),
            )
            raise NetworkError(f"Network error: {e}") from e

        if not response.is_success:
            raise HttpError(response.status_code, decode_body(response))
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

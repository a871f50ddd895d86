"""HTTP plumbing shared by the login exchange and the data model client.

Wraps httpx with thread-local clients, JSON POST requests and envelope
decoding, translating httpx and pydantic failures into the package's own
exception types.
"""

import threading
import time
from typing import Any, TypeVar

import httpx
import pydantic
import structlog

from .errors import DecodeError, TransportError
from .types import Envelope

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://api.clouden.io"

DEFAULT_TIMEOUT = 30.0

JSON_CONTENT_TYPE = "application/json"

E = TypeVar("E", bound=Envelope)


class HttpSession:
    """Blocking JSON-over-HTTP session.

    Thread-safe through thread-local storage of httpx.Client instances,
    unless an ``http_client`` is injected, in which case that client is used
    from every thread and is never closed by the session.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the session.

        Args:
            timeout: Request timeout in seconds (default: 30.0).
            http_client: Optional caller-owned client used instead of the
                thread-local ones.

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        self._timeout = timeout
        self._http_client = http_client
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get the injected client, or create a thread-local one lazily."""
        if self._http_client is not None:
            return self._http_client
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                headers={"Accept": JSON_CONTENT_TYPE},
                timeout=self._timeout,
            )
        return self._local.client

    def close(self):
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    def post(
        self,
        url: str,
        body: dict[str, Any],
        envelope: type[E],
        headers: dict[str, str] | None = None,
    ) -> E:
        """POST a JSON body and decode the response envelope.

        Args:
            url: Absolute request URL.
            body: JSON-serializable request body.
            envelope: Envelope model the response must match.
            headers: Extra request headers.

        Returns:
            The validated envelope. Its ``code`` is not checked here.

        Raises:
            TransportError: On network errors, timeouts or HTTP status >= 400.
            DecodeError: If the body is not JSON or does not match ``envelope``.
        """
        start_time = time.time()
        request_headers = {"Content-Type": JSON_CONTENT_TYPE, **(headers or {})}
        logger.debug("Making API request", method="POST", url=url)

        try:
            response = self.client.post(
                url,
                json=body,
                headers=request_headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.exception(
                "API request failed",
                url=url,
                duration_seconds=round(time.time() - start_time, 3),
            )
            msg = f"request to {url} failed: {exc}"
            raise TransportError(msg) from exc

        duration = time.time() - start_time
        logger.debug(
            "API request completed",
            status_code=response.status_code,
            duration_seconds=round(duration, 3),
        )

        if response.status_code >= 400:  # noqa: PLR2004
            logger.error("HTTP error response", url=url, status_code=response.status_code)
            msg = f"http error: {response.status_code}"
            raise TransportError(msg, status_code=response.status_code)

        try:
            return envelope.model_validate_json(response.content)
        except pydantic.ValidationError as exc:
            logger.error("Malformed response body", url=url, envelope=envelope.__name__)
            msg = f"unexpected response from {url}: {exc}"
            raise DecodeError(msg) from exc

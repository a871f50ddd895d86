"""Password login and bearer token caching for the polyapi gateway.

A ``Credential`` logs in lazily: the first ``get_token()`` call, and any call
made when fewer than ``EXPIRY_MARGIN`` seconds of validity remain, performs a
login round trip. Every other call returns the cached token.
"""

import threading
import time
from datetime import UTC, datetime
from types import TracebackType
from typing import Self

import httpx
import structlog

from .errors import AuthError
from .transport import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, HttpSession
from .types import LoginResponse, LoginType

logger = structlog.get_logger(__name__)

LOGIN_PATH = "/api/v1/warden/login"

# Seconds before the literal expiry at which a token stops being served
EXPIRY_MARGIN = 600


class Credential:
    """Username/password credential with a cached, expiring access token.

    One credential may be shared by several data model clients. A lock
    serializes the check-and-refresh step, so concurrent callers hitting an
    expired token wait for a single login instead of each performing one.
    """

    def __init__(
        self,
        username: str,
        password: str,
        login_type: LoginType = LoginType.PASSWORD,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the credential.

        Args:
            username: Login user name.
            password: Login password.
            login_type: Login method (default: password).
            base_url: Gateway base URL (e.g., "http://api.clouden.io").
            timeout: Login request timeout in seconds (default: 30.0).
            http_client: Optional caller-owned httpx client.

        Raises:
            ValueError: If base_url is empty or timeout is not positive.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)

        self.username = username
        self.password = password
        self.login_type = LoginType(login_type)
        self.base_url = base_url.rstrip("/")
        self.token: str | None = None
        self.expiry: datetime | None = None
        self.refresh_count = 0

        self._session = HttpSession(timeout=timeout, http_client=http_client)
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, base_url={self.base_url!r})"

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self) -> None:
        """Close the HTTP client used for logins."""
        self._session.close()

    def is_expired(self) -> bool:
        """Return True if the cached token must be refreshed before use.

        A token without an expiry is always expired. Otherwise the token
        expires ``EXPIRY_MARGIN`` seconds before its literal deadline.
        """
        if self.token is None or self.expiry is None:
            return True
        return self.expiry.timestamp() - time.time() <= EXPIRY_MARGIN

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get_token()`` logs in again."""
        with self._lock:
            self.token = None
            self.expiry = None

    def get_token(self) -> str:
        """Return a valid access token, logging in if the cached one expired.

        Returns:
            The access token.

        Raises:
            AuthError: If the service rejects the login.
            TransportError: If the login request fails.
            DecodeError: If the login response is malformed.
        """
        with self._lock:
            if not self.is_expired():
                return self.token
            return self._refresh()

    def _refresh(self) -> str:
        """Log in and overwrite the cached token and expiry. Caller holds the lock."""
        body = {
            "username": self.username,
            "password": self.password,
            "login_type": self.login_type.value,
        }
        response = self._session.post(self.base_url + LOGIN_PATH, body, LoginResponse)
        self.refresh_count += 1
        if response.code != 0:
            logger.error("Login rejected", username=self.username, code=response.code, msg=response.msg)
            raise AuthError(response.msg, response.code)

        expiry = response.data.expiry
        if expiry is not None and expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        self.token = response.data.access_token
        self.expiry = expiry

        if expiry is None:
            logger.warning("Login response has no expiry, token will be refreshed on next use")
        else:
            logger.info(
                "Fetched new access token",
                username=self.username,
                expires_in_seconds=int(expiry.timestamp() - time.time()),
            )
        return self.token

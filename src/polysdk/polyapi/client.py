"""Data model client for the polyapi gateway.

Turns create/get/search/delete/update calls into the gateway's request
envelopes, attaches the credential's access token, and decodes the response
envelopes into plain documents or typed errors.
"""

import time
from collections.abc import Iterable
from types import TracebackType
from typing import Protocol, Self

import httpx
import structlog

from ..metrics import RequestStats
from .auth import Credential
from .errors import PolySDKError, ServiceError, ValidationError
from .transport import DEFAULT_TIMEOUT, E, HttpSession
from .types import (
    Document,
    EntitiesResponse,
    EntityResponse,
    QueryFilter,
    SearchParameters,
    term_filter,
)

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_HEADER = "Access-Token"

DATA_MODEL_PATH = "/api/v1/polyapi/request/system/app/{app_id}/raw/inner/form/{model_code}/{model_code}_{action}.r"


class DataModelClient(Protocol):
    """Operations available on one (application, model) pair."""

    def create(self, document: Document) -> Document:
        """Create one document and return it as stored."""

    def batch_create(self, documents: Iterable[Document]) -> list[Document]:
        """Create documents in order, stopping at the first failure."""

    def get(self, id: str) -> Document:  # noqa: A002
        """Fetch one document by ``_id``."""

    def search(self, params: SearchParameters | None = None) -> tuple[list[Document], int]:
        """Return (documents, total) for a query."""

    def delete(self, id: str) -> tuple[bool, int]:  # noqa: A002
        """Delete one document by ``_id``."""

    def delete_by_query(self, query: QueryFilter) -> tuple[bool, int]:
        """Delete every document matching ``query``."""

    def update(self, document: Document, query: QueryFilter | None = None) -> tuple[bool, int]:
        """Update documents with the given field values."""


class QxDataModelClient:
    """Data model client bound to a fixed application id and model code.

    Can be used as a context manager for automatic cleanup. The credential
    is not closed with the client, since other clients may share it.
    """

    def __init__(
        self,
        credential: Credential,
        app_id: str,
        model_code: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            credential: Credential supplying access tokens.
            app_id: Application id the model belongs to.
            model_code: Model code naming the document collection.
            base_url: Gateway base URL (default: the credential's base URL).
            timeout: Request timeout in seconds (default: 30.0).
            http_client: Optional caller-owned httpx client.

        Raises:
            ValueError: If app_id or model_code is empty, or timeout is not
                positive.
        """
        if not app_id:
            msg = "app_id cannot be empty"
            raise ValueError(msg)
        if not model_code:
            msg = "model_code cannot be empty"
            raise ValueError(msg)

        self.credential = credential
        self.app_id = app_id
        self.model_code = model_code
        self.base_url = (base_url or credential.base_url).rstrip("/")
        self.stats = RequestStats()

        self._session = HttpSession(timeout=timeout, http_client=http_client)

    def __repr__(self) -> str:
        return f"QxDataModelClient(app_id={self.app_id!r}, model_code={self.model_code!r})"

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
        """Close the thread-local HTTP client if open."""
        self._session.close()

    def build_url(self, action: str) -> str:
        """Return the absolute URL for a data model action (create, get, ...)."""
        path = DATA_MODEL_PATH.format(
            app_id=self.app_id,
            model_code=self.model_code,
            action=action,
        )
        return self.base_url + path

    def _post(self, action: str, body: dict, envelope: type[E]) -> E:
        """Send an authenticated request and fail on a non-zero envelope code.

        Raises:
            ServiceError: If the envelope code is non-zero.
            AuthError, TransportError, DecodeError: From the token refresh or
                the request itself.
        """
        start_time = time.time()
        failed = True
        try:
            token = self.credential.get_token()
            response = self._session.post(
                self.build_url(action),
                body,
                envelope,
                headers={ACCESS_TOKEN_HEADER: token},
            )
            if response.code != 0:
                logger.error(
                    "API error response",
                    action=action,
                    model_code=self.model_code,
                    code=response.code,
                    error_message=response.msg,
                )
                raise ServiceError(response.msg, response.code)
            failed = False
            return response
        finally:
            self.stats.record(action, time.time() - start_time, failed)

    def create(self, document: Document) -> Document:
        """Create one document.

        Args:
            document: Field values of the new document.

        Returns:
            The created document as stored by the service, including any
            generated fields such as ``_id``.

        Raises:
            ValidationError: If document is empty or None.
            ServiceError: If the service rejects the document.
        """
        if not document:
            msg = "document cannot be empty"
            raise ValidationError(msg)
        response = self._post("create", {"entity": document}, EntityResponse)
        return response.data.entity or {}

    def batch_create(self, documents: Iterable[Document]) -> list[Document]:
        """Create documents one at a time, in order.

        Stops at the first failure and re-raises it; documents created before
        the failure are not returned.

        Returns:
            The created documents, in input order.
        """
        created: list[Document] = []
        for document in documents:
            try:
                created.append(self.create(document))
            except PolySDKError:
                logger.error(
                    "Batch create aborted",
                    model_code=self.model_code,
                    created_count=len(created),
                )
                raise
        return created

    def get(self, id: str) -> Document:  # noqa: A002
        """Fetch one document by ``_id``.

        The service reports a missing document as an ordinary ServiceError;
        inspect its ``msg`` to tell the cases apart.

        Raises:
            ValidationError: If id is empty.
            ServiceError: If the lookup fails.
        """
        if not id:
            msg = "id cannot be empty"
            raise ValidationError(msg)
        response = self._post("get", {"query": term_filter("_id", id)}, EntityResponse)
        return response.data.entity or {}

    def search(self, params: SearchParameters | None = None) -> tuple[list[Document], int]:
        """Search documents.

        Args:
            params: Query, paging and sort (default: first 20 documents).

        Returns:
            Tuple of (documents, total) where total is the service-reported
            match count, which may exceed the page length.
        """
        params = (params or SearchParameters()).normalized()
        response = self._post("search", params.model_dump(), EntitiesResponse)
        return response.data.entities or [], response.data.total

    def delete(self, id: str) -> tuple[bool, int]:  # noqa: A002
        """Delete one document by ``_id``.

        Returns:
            Tuple of (success, deleted_count).

        Raises:
            ValidationError: If id is empty.
            ServiceError: If the service rejects the deletion.
        """
        if not id:
            msg = "id cannot be empty"
            raise ValidationError(msg)
        return self._delete(term_filter("_id", id))

    def delete_by_query(self, query: QueryFilter) -> tuple[bool, int]:
        """Delete every document matching ``query``.

        Returns:
            Tuple of (success, deleted_count).

        Raises:
            ValidationError: If query is empty or None.
        """
        if not query:
            msg = "query cannot be empty"
            raise ValidationError(msg)
        return self._delete(query)

    def _delete(self, query: QueryFilter) -> tuple[bool, int]:
        response = self._post("delete", {"query": query}, EntityResponse)
        return True, response.data.count

    def update(self, document: Document, query: QueryFilter | None = None) -> tuple[bool, int]:
        """Update documents with the given field values.

        Only ``{"entity": document}`` is sent. ``query`` is accepted for
        interface compatibility and is not transmitted.

        Returns:
            Tuple of (success, updated_count).

        Raises:
            ValidationError: If document is empty or None.
        """
        if not document:
            msg = "document cannot be empty"
            raise ValidationError(msg)
        if query:
            logger.warning("Update query is not sent to the service", model_code=self.model_code)
        response = self._post("update", {"entity": document}, EntityResponse)
        return True, response.data.count

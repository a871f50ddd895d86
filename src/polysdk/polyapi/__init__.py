"""polyapi data model client package.

Provides a blocking HTTP client for the polyapi gateway: password login with
a cached access token, and CRUD operations against one application model.

Exports:
    Credential: Login credential with token caching and refresh.
    QxDataModelClient: CRUD client for one (app id, model code) pair.
    DataModelClient: Protocol implemented by QxDataModelClient.
    SearchParameters: Query, paging and sort for searches.
    errors: Module containing the exception hierarchy.
    types: Module containing Pydantic models for API envelopes.
"""

from . import errors, types
from .auth import EXPIRY_MARGIN, Credential
from .client import DataModelClient, QxDataModelClient
from .errors import (
    AuthError,
    DecodeError,
    PolySDKError,
    ServiceError,
    TransportError,
    ValidationError,
)
from .transport import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .types import LoginType, SearchParameters, term_filter

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT",
    "EXPIRY_MARGIN",
    "AuthError",
    "Credential",
    "DataModelClient",
    "DecodeError",
    "LoginType",
    "PolySDKError",
    "QxDataModelClient",
    "SearchParameters",
    "ServiceError",
    "TransportError",
    "ValidationError",
    "errors",
    "term_filter",
    "types",
]

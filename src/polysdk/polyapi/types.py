"""Request and response types for the polyapi data model service.

Pydantic models for the ``{code, data, msg}`` envelopes returned by the
service, plus the search request parameters. Documents themselves stay
plain dictionaries since the client knows nothing about model schemas.
"""

import enum
from datetime import datetime
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

Document: TypeAlias = dict[str, Any]
QueryFilter: TypeAlias = dict[str, Any]

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20


class LoginType(str, enum.Enum):
    """Login methods accepted by the login endpoint."""

    PASSWORD = "pwd"


def term_filter(field: str, value: Any) -> QueryFilter:
    """Build a point-match filter, e.g. ``{"term": {"_id": "abc"}}``."""
    return {"term": {field: value}}


def _positive_or(value: Any, default: int) -> Any:
    if value is None or (isinstance(value, int) and value < 1):
        return default
    return value


class SearchParameters(BaseModel):
    """Parameters for a multi-entity search.

    Page and size below 1 (or None) fall back to the defaults, both when the
    model is built or assigned and again in ``normalized()`` right before a
    request is sent, so the service never receives a zero or negative value.
    """

    model_config = ConfigDict(validate_assignment=True)

    query: QueryFilter = Field(default_factory=dict)
    page: int = DEFAULT_PAGE
    size: int = DEFAULT_PAGE_SIZE
    sort: list[str] = Field(default_factory=list)

    @field_validator("page", mode="before")
    @classmethod
    def _default_page(cls, value: int | None) -> int:
        return _positive_or(value, DEFAULT_PAGE)

    @field_validator("size", mode="before")
    @classmethod
    def _default_size(cls, value: int | None) -> int:
        return _positive_or(value, DEFAULT_PAGE_SIZE)

    def normalized(self) -> "SearchParameters":
        """Return a copy with page and size guaranteed to be at least 1."""
        return self.model_copy(
            update={
                "page": _positive_or(self.page, DEFAULT_PAGE),
                "size": _positive_or(self.size, DEFAULT_PAGE_SIZE),
            },
        )


class Envelope(BaseModel):
    """Fields shared by every response: ``code == 0`` means success."""

    code: int
    msg: str = ""

    @field_validator("msg", mode="before")
    @classmethod
    def _null_msg(cls, value: Any) -> Any:
        return "" if value is None else value

    # Failed calls may answer with "data": null
    @field_validator("data", mode="before", check_fields=False)
    @classmethod
    def _null_data(cls, value: Any) -> Any:
        return {} if value is None else value


class LoginData(BaseModel):
    """Token data returned by the login endpoint."""

    access_token: str = ""
    expiry: datetime | None = None


class LoginResponse(Envelope):
    """Envelope returned by the login endpoint."""

    data: LoginData = Field(default_factory=LoginData)


class EntityData(BaseModel):
    """Payload of single-entity responses (create, get, delete, update)."""

    count: int = 0
    entity: Document | None = None


class EntityResponse(Envelope):
    """Single-entity envelope."""

    data: EntityData = Field(default_factory=EntityData)


class EntitiesData(BaseModel):
    """Payload of search responses."""

    total: int = 0
    entities: list[Document] | None = None


class EntitiesResponse(Envelope):
    """Multi-entity envelope."""

    data: EntitiesData = Field(default_factory=EntitiesData)

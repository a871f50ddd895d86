"""Shared fixtures: an in-memory polyapi gateway served through starlette.

``FakePolyApi`` answers the login and data model routes with the same
envelopes as the real gateway, keeps documents in a dict keyed by ``_id``,
and records every request so tests can inspect headers and bodies.
Canned responses can be queued per action to simulate service errors.
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import starlette.applications
import starlette.requests
import starlette.responses
import starlette.routing
from starlette.testclient import TestClient

from polysdk import polyapi

BASE_URL = "http://testserver"
APP_ID = "2dpjq"
MODEL_CODE = "ProviderAttrDef"


class FakePolyApi:
    """In-memory stand-in for the polyapi gateway."""

    def __init__(self):
        self.documents: dict[str, dict[str, Any]] = {}
        self.requests: list[dict[str, Any]] = []
        self.canned: dict[str, list[dict[str, Any]]] = {}
        self.token_lifetime = timedelta(hours=1)
        self.login_count = 0
        self.app = starlette.applications.Starlette(
            routes=[
                starlette.routing.Route(
                    "/api/v1/warden/login",
                    self._login,
                    methods=["POST"],
                ),
                starlette.routing.Route(
                    "/api/v1/polyapi/request/system/app/{app_id}/raw/inner/form/{model_code}/{resource}",
                    self._data_model,
                    methods=["POST"],
                ),
            ],
        )

    def queue(self, action: str, response: dict[str, Any]) -> None:
        """Answer the next ``action`` request with ``response`` verbatim."""
        self.canned.setdefault(action, []).append(response)

    def requests_for(self, action: str) -> list[dict[str, Any]]:
        return [r for r in self.requests if r["action"] == action]

    async def _login(self, request: starlette.requests.Request) -> starlette.responses.Response:
        body = await request.json()
        self.requests.append({"action": "login", "headers": dict(request.headers), "body": body})
        if self.canned.get("login"):
            return starlette.responses.JSONResponse(self.canned["login"].pop(0))
        self.login_count += 1
        expiry = datetime.now(UTC) + self.token_lifetime
        return starlette.responses.JSONResponse(
            {
                "code": 0,
                "data": {"access_token": f"tok{self.login_count}", "expiry": expiry.isoformat()},
                "msg": "",
            },
        )

    async def _data_model(self, request: starlette.requests.Request) -> starlette.responses.Response:
        model_code = request.path_params["model_code"]
        resource = request.path_params["resource"]
        action = resource.removeprefix(f"{model_code}_").removesuffix(".r")
        body = await request.json()
        self.requests.append(
            {
                "action": action,
                "app_id": request.path_params["app_id"],
                "model_code": model_code,
                "headers": dict(request.headers),
                "body": body,
            },
        )
        if self.canned.get(action):
            return starlette.responses.JSONResponse(self.canned[action].pop(0))
        handler = getattr(self, f"_handle_{action}")
        return starlette.responses.JSONResponse(handler(body))

    def _matches(self, document: dict[str, Any], query: dict[str, Any]) -> bool:
        term = query.get("term", {})
        return all(document.get(field) == value for field, value in term.items())

    def _handle_create(self, body: dict[str, Any]) -> dict[str, Any]:
        entity = {**body["entity"], "_id": uuid.uuid4().hex.upper(), "created_at": 1700000000}
        self.documents[entity["_id"]] = entity
        return {"code": 0, "data": {"count": 1, "entity": entity}, "msg": ""}

    def _handle_get(self, body: dict[str, Any]) -> dict[str, Any]:
        for document in self.documents.values():
            if self._matches(document, body["query"]):
                return {"code": 0, "data": {"count": 1, "entity": document}, "msg": ""}
        return {"code": 1, "data": {"count": 0, "entity": {}}, "msg": "not found"}

    def _handle_search(self, body: dict[str, Any]) -> dict[str, Any]:
        matched = [d for d in self.documents.values() if self._matches(d, body["query"])]
        start = (body["page"] - 1) * body["size"]
        page = matched[start : start + body["size"]]
        return {"code": 0, "data": {"total": len(matched), "entities": page}, "msg": ""}

    def _handle_delete(self, body: dict[str, Any]) -> dict[str, Any]:
        doomed = [i for i, d in self.documents.items() if self._matches(d, body["query"])]
        for doc_id in doomed:
            del self.documents[doc_id]
        return {"code": 0, "data": {"count": len(doomed), "entity": {}}, "msg": ""}

    def _handle_update(self, body: dict[str, Any]) -> dict[str, Any]:
        entity = body["entity"]
        document = self.documents.get(entity.get("_id"))
        if document is None:
            return {"code": 0, "data": {"count": 0, "entity": {}}, "msg": ""}
        document.update(entity)
        return {"code": 0, "data": {"count": 1, "entity": document}, "msg": ""}


@pytest.fixture
def fake_service() -> FakePolyApi:
    """Fresh in-memory gateway."""
    return FakePolyApi()


@pytest.fixture
def http_client(fake_service: FakePolyApi):
    """httpx client routed into the fake gateway."""
    with TestClient(fake_service.app, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def credential(http_client: TestClient) -> polyapi.Credential:
    """Credential that logs in against the fake gateway."""
    return polyapi.Credential(
        username="user@example.com",
        password="secret",
        base_url=BASE_URL,
        http_client=http_client,
    )


@pytest.fixture
def data_client(
    credential: polyapi.Credential,
    http_client: TestClient,
) -> polyapi.QxDataModelClient:
    """Data model client for the test model on the fake gateway."""
    return polyapi.QxDataModelClient(
        credential=credential,
        app_id=APP_ID,
        model_code=MODEL_CODE,
        http_client=http_client,
    )

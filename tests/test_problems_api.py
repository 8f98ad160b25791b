from fastapi.testclient import TestClient

from adt_sync.config import Settings
from adt_sync.db.errors import StoreError
from adt_sync.main import app
from adt_sync.models.records import UserAcProblemRecord
from adt_sync.services.persistence import BatchPersistence
from conftest import FakeStore

HEADERS = {"x-extension-name": "adt-helper"}


def _patch(monkeypatch, store):
    from adt_sync.api.routers import problems as problems_router

    monkeypatch.setattr(problems_router, "get_settings", lambda: Settings(extension_name="adt-helper"))
    monkeypatch.setattr(problems_router, "get_persistence", lambda: BatchPersistence(store))


def test_returns_sorted_problem_ids(monkeypatch):
    store = FakeStore()
    store.put(UserAcProblemRecord.for_user("tourist", ["abc356_c", "abc356_a"]).to_item())
    _patch(monkeypatch, store)

    resp = TestClient(app).get("/users/tourist/problems", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"problem_ids": ["abc356_a", "abc356_c"]}


def test_unknown_user_gets_empty_list(monkeypatch):
    _patch(monkeypatch, FakeStore())
    resp = TestClient(app).get("/users/nobody/problems", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"problem_ids": []}


def test_wrong_or_missing_extension_header_is_forbidden(monkeypatch):
    _patch(monkeypatch, FakeStore())
    client = TestClient(app)
    for headers in ({}, {"x-extension-name": "something-else"}):
        resp = client.get("/users/tourist/problems", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"


def test_store_failure_is_internal_error(monkeypatch):
    class _BrokenStore(FakeStore):
        async def get_item(self, key):
            raise StoreError("table unavailable")

    _patch(monkeypatch, _BrokenStore())
    resp = TestClient(app).get("/users/tourist/problems", headers=HEADERS)
    assert resp.status_code == 500
    assert resp.json() == {"error": "internal_error", "message": "An unexpected error occurred."}


def _broken_settings():
    raise RuntimeError("Environment variable DDB_MAX_BATCH_GET must be an integer, got 'x'")


def test_configuration_error_is_internal_error(monkeypatch):
    from adt_sync.api.routers import problems as problems_router

    monkeypatch.setattr(problems_router, "get_settings", _broken_settings)
    resp = TestClient(app).get("/users/tourist/problems", headers=HEADERS)
    assert resp.status_code == 500
    assert resp.json()["error"] == "internal_error"


def test_cors_origins_fall_back_to_none_on_bad_configuration(monkeypatch):
    from adt_sync import main

    monkeypatch.setattr(main, "get_settings", _broken_settings)
    assert main._cors_origins() == []
    monkeypatch.setattr(main, "get_settings", lambda: Settings(extension_origins=["chrome-extension://abc"]))
    assert main._cors_origins() == ["chrome-extension://abc"]

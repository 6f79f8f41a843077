from fastapi.testclient import TestClient

from app.redis.cache import (
    REDIS_KEY_DUE_TYPES_ALL,
    REDIS_KEY_DUES_ANALYTICS,
    REDIS_KEY_PAYMENTS_PENDING,
    REDIS_KEY_PHARMACY_STATS,
    cached,
    create_key,
    get_cached,
    set_cached,
)
from app.redis.invalidation import invalidate_resource
from app.redis.warming import warm_cache
from tests.conftest import create_due_type, create_pharmacy


def test_create_key_is_deterministic():
    assert create_key("dues") == "dues"
    assert create_key("dues", 5) == "dues:5"
    assert create_key("dues", params={"year": 2030, "page": 1}) == create_key(
        "dues", params={"page": 1, "year": 2030}
    )
    assert create_key("dues", params={"year": None}) == "dues"


def test_helpers_without_redis():
    calls = []
    assert get_cached("anything") is None
    assert set_cached("anything", {"a": 1}) is False
    assert cached("anything", lambda: calls.append(1) or {"a": 1}) == {"a": 1}
    assert cached("anything", lambda: calls.append(1) or {"a": 1}) == {"a": 1}
    assert len(calls) == 2
    assert warm_cache() == {}


def test_cached_uses_redis(fake_redis):
    calls = []

    def loader():
        calls.append(1)
        return {"total": 3}

    assert cached("pharmacy-stats", loader) == {"total": 3}
    assert cached("pharmacy-stats", loader) == {"total": 3}
    assert len(calls) == 1
    assert fake_redis.hits == 1


def test_invalidate_resource(fake_redis):
    set_cached("due-types:7", {"id": 7})
    set_cached('due-types:7:{"active":true}', {"id": 7})
    set_cached("due-types:70", {"id": 70})
    assert invalidate_resource("due-types", 7) == 2
    assert get_cached("due-types:70") == {"id": 70}


def test_due_type_writes_invalidate_list(fake_redis, treasurer_client: TestClient):
    treasurer_client.get("/api/due-types")
    assert any(key.startswith(REDIS_KEY_DUE_TYPES_ALL) for key in fake_redis.store)

    due_type = create_due_type(treasurer_client)
    assert not any(key.startswith(REDIS_KEY_DUE_TYPES_ALL) for key in fake_redis.store)

    names = [d["name"] for d in treasurer_client.get("/api/due-types").json()]
    assert due_type["name"] in names


def test_pharmacy_stats_refresh_after_write(fake_redis, auth_client: TestClient):
    before = auth_client.get("/api/pharmacies/stats").json()
    assert REDIS_KEY_PHARMACY_STATS in fake_redis.store

    create_pharmacy(auth_client)
    assert REDIS_KEY_PHARMACY_STATS not in fake_redis.store
    after = auth_client.get("/api/pharmacies/stats").json()
    assert after["total"] == before["total"] + 1


def test_warm_cache(fake_redis):
    outcomes = warm_cache()
    assert outcomes
    assert all(outcomes.values())
    assert REDIS_KEY_PHARMACY_STATS in fake_redis.store
    assert REDIS_KEY_PAYMENTS_PENDING in fake_redis.store
    assert create_key(REDIS_KEY_DUE_TYPES_ALL, params={"active": None}) in fake_redis.store


def test_cache_endpoints(fake_redis, admin_client: TestClient, member_client: TestClient):
    set_cached("dues:1", {"id": 1})
    set_cached("dues:2", {"id": 2})
    set_cached("events:1", {"id": 1})

    stats = admin_client.get("/api/cache/stats").json()
    assert stats["available"] is True
    assert stats["keys"] == 3

    response = admin_client.delete("/api/cache", params={"pattern": "dues:*"})
    assert response.status_code == 200
    assert response.json() == {"deleted": 2}
    assert list(fake_redis.store) == ["events:1"]

    response = admin_client.post("/api/cache/warm")
    assert response.status_code == 200
    assert REDIS_KEY_PHARMACY_STATS in response.json()

    assert member_client.get("/api/cache/stats").status_code == 403
    assert member_client.delete("/api/cache").status_code == 403


def test_cache_stats_without_redis(admin_client: TestClient):
    assert admin_client.get("/api/cache/stats").json() == {"available": False}
    assert admin_client.delete("/api/cache").json() == {"deleted": 0}
    assert admin_client.post("/api/cache/warm").json() == {}


def test_deleting_pharmacy_drops_payment_and_dues_caches(fake_redis, auth_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    set_cached(REDIS_KEY_PAYMENTS_PENDING, {"payments": [], "total": 0})
    set_cached(create_key(REDIS_KEY_DUES_ANALYTICS, params={"year": 2030}), {"total_dues": 1})

    assert auth_client.delete(f"/api/pharmacies/{pharmacy['id']}").status_code == 200
    assert REDIS_KEY_PAYMENTS_PENDING not in fake_redis.store
    assert not any(key.startswith(REDIS_KEY_DUES_ANALYTICS) for key in fake_redis.store)

"""
Tests for FastAPI Integration.

============================================================
PURPOSE
============================================================
- Startup validation through the lifespan hook
- GET /database-health report

============================================================
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import database_health
from database_health import ConfigurationError, DatabaseHealth, MemoryCache
from database_health.integrations.fastapi import create_health_router, health_lifespan


class AnimalsRecord:
    pass


# ============================================================
# LIFESPAN
# ============================================================

class TestHealthLifespan:
    """Tests for health_lifespan()."""

    def test_startup_fails_without_vcpu_count(self, store):
        store.configure(cache=MemoryCache())
        app = FastAPI(lifespan=health_lifespan(store))

        with pytest.raises(ConfigurationError, match="vcpu_count"):
            with TestClient(app):
                pass

    def test_startup_fails_without_cache(self, store):
        store.configure(vcpu_count=16)
        app = FastAPI(lifespan=health_lifespan(store))

        with pytest.raises(ConfigurationError, match="cache"):
            with TestClient(app):
                pass

    def test_startup_succeeds_with_valid_configuration(self, store):
        store.configure(vcpu_count=16, cache=MemoryCache())
        app = FastAPI(lifespan=health_lifespan(store))

        with TestClient(app):
            pass

    def test_validates_process_wide_store_by_default(self):
        app = FastAPI(lifespan=health_lifespan())
        database_health.configure(vcpu_count=16, cache=MemoryCache())

        with TestClient(app):
            pass


# ============================================================
# ROUTER
# ============================================================

class TestHealthRouter:
    """Tests for GET /database-health."""

    def _client(self, health: DatabaseHealth) -> TestClient:
        app = FastAPI()
        app.include_router(create_health_router(health))
        return TestClient(app)

    def test_reports_every_bound_database(self, health, cache, make_engine):
        health.store.configure(vcpu_count=16, cache=cache)
        health.store.for_model(AnimalsRecord, vcpu_count=8, threshold=0.5)
        health.bind(make_engine("postgresql"))
        health.bind(make_engine("postgresql"), "animals", AnimalsRecord)
        cache.write("load_pct:primary", 0.25, 60)
        cache.write("load_pct:animals", 0.75, 60)

        response = self._client(health).get("/database-health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["healthy"] is False

        by_name = {item["database_name"]: item for item in body["data"]}
        assert by_name["primary"]["healthy"] is True
        assert by_name["primary"]["max_healthy_sessions"] == 12
        assert by_name["animals"]["healthy"] is False
        assert by_name["animals"]["threshold"] == 0.5

    def test_unsupported_adapter_returns_500(self, health, cache, make_engine):
        health.store.configure(vcpu_count=16, cache=cache)
        health.bind(make_engine("sqlite"))

        response = self._client(health).get("/database-health")

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "UnsupportedAdapterError"
        assert detail["operation"] == "resolve_adapter"
        assert detail["fatal"] is True

    def test_custom_prefix(self, health, cache, make_engine):
        health.store.configure(vcpu_count=16, cache=cache)
        health.bind(make_engine("postgresql"))
        cache.write("load_pct:primary", 0.1, 60)

        app = FastAPI()
        app.include_router(create_health_router(health, prefix="/ops/db"))

        response = TestClient(app).get("/ops/db")

        assert response.status_code == 200
        assert response.json()["healthy"] is True

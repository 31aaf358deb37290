import pytest
from fastapi.testclient import TestClient

from auth import create_token
from config import Settings
from errors import Forbidden, ProductNotFound, ValidationFailed
from main import create_app
from orders import OrderManager

from conftest import auth_headers


def test_root(client):
    assert client.get("/").json() == {"message": "Welcome to Data Vista API"}


def test_database_check(client, products):
    body = client.get("/test").json()
    assert body["connection_status"] == "Connected"
    assert "products" in body["collections"]


def test_admin_stats(client, admin, alice, alice_order):
    assert client.get("/api/admin/stats", headers=auth_headers(alice)).status_code == 403
    stats = client.get("/api/admin/stats", headers=auth_headers(admin)).json()
    assert stats["users"] == 2
    assert stats["products"] == 2
    assert stats["orders"] == 1
    assert stats["revenue"] == 25.50
    assert stats["ordersByStatus"]["pending"] == 1


def test_cors_allows_frontend_only(client):
    ok = client.options("/api/products", headers={
        "Origin": "http://localhost:5173",
        "Access-Control-Request-Method": "GET",
    })
    assert ok.headers["access-control-allow-origin"] == "http://localhost:5173"

    blocked = client.options("/api/products", headers={
        "Origin": "http://evil.example",
        "Access-Control-Request-Method": "GET",
    })
    assert "access-control-allow-origin" not in blocked.headers


def test_unexpected_errors_hide_detail_outside_development(db, monkeypatch):
    def boom(self, actor):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(OrderManager, "list_mine", boom)
    app = create_app(Settings(jwt_secret="test-secret"), db=db)
    client = TestClient(app, raise_server_exceptions=False)
    db["users"].insert_one({"name": "X", "email": "x@example.com", "password": "", "role": "user"})
    user = db["users"].find_one({"email": "x@example.com"})
    token = create_token(user, Settings(jwt_secret="test-secret"))
    resp = client.get("/api/orders/my-orders", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 500
    assert resp.json() == {"message": "Something went wrong!", "error": None}


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mongodb://db:27017")
        monkeypatch.setenv("PORT", "5000")
        monkeypatch.setenv("APP_ENV", "development")
        monkeypatch.setenv("FRONTEND_URL", "https://vista.example/")
        settings = Settings.from_env()
        assert settings.database_url == "mongodb://db:27017"
        assert settings.port == 5000
        assert settings.is_development
        assert settings.allowed_origin == "https://vista.example"

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "DATABASE_NAME", "JWT_SECRET", "PORT", "APP_ENV", "FRONTEND_URL"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.database_name == "data-vista"
        assert settings.port == 4001
        assert not settings.is_development

    def test_frozen(self):
        with pytest.raises(Exception):
            Settings().port = 1


class TestErrorBodies:
    def test_product_not_found(self):
        exc = ProductNotFound("abc")
        assert exc.status_code == 400
        assert exc.to_dict() == {"message": "Product not found: abc", "productId": "abc"}

    def test_validation_failed(self):
        exc = ValidationFailed.single("status", "Invalid status: lost")
        assert exc.to_dict() == {
            "message": "Invalid status: lost",
            "errors": [{"field": "status", "message": "Invalid status: lost"}],
        }

    def test_defaults(self):
        assert Forbidden().message == "Not authorized"
        assert Forbidden().status_code == 403

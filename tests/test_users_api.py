from datetime import datetime, timedelta, timezone

from bson import ObjectId
from jose import jwt

from auth import create_token
from config import Settings
from database import USERS

from conftest import PASSWORD, SETTINGS, auth_headers


class TestRegisterAndLogin:
    def test_register_forces_user_role(self, client, db):
        resp = client.post("/api/users/register", json={
            "name": "Carol",
            "email": "  Carol@Example.COM ",
            "password": "hunter22",
            "role": "admin",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["token"]
        assert body["user"]["role"] == "user"
        assert body["user"]["email"] == "carol@example.com"

        stored = db[USERS].find_one({"email": "carol@example.com"})
        assert stored["password"] != "hunter22"
        assert stored["preferences"]["notifications"]["marketingEmails"] is False

    def test_register_duplicate_email(self, client, alice):
        resp = client.post("/api/users/register", json={"name": "Alice", "email": "ALICE@example.com", "password": "another1"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "User already exists"

    def test_register_short_password(self, client):
        resp = client.post("/api/users/register", json={"name": "Dan", "email": "dan@example.com", "password": "123"})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "password"

    def test_login_and_me(self, client, alice):
        resp = client.post("/api/users/login", json={"email": "alice@example.com", "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.json()["token"]

        me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "alice@example.com"
        assert "password" not in me.json()

    def test_login_wrong_password(self, client, alice):
        resp = client.post("/api/users/login", json={"email": "alice@example.com", "password": "wrong-one"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"

    def test_token_for_deleted_user(self, client, db, alice):
        headers = auth_headers(alice)
        db[USERS].delete_one({"_id": alice["_id"]})
        assert client.get("/api/users/me", headers=headers).status_code == 401


class TestTokenRejection:
    def test_foreign_signature(self, client, alice):
        token = create_token(alice, Settings(jwt_secret="someone-else"))
        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_expired_token(self, client, alice):
        token = jwt.encode(
            {"sub": str(alice["_id"]), "role": "user", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            SETTINGS.jwt_secret,
            algorithm=SETTINGS.jwt_algorithm,
        )
        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_non_bearer_scheme(self, client, alice):
        token = create_token(alice, SETTINGS)
        resp = client.get("/api/users/me", headers={"Authorization": f"Token {token}"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid Authorization header"

    def test_blank_bearer(self, client, alice):
        resp = client.get("/api/users/me", headers={"Authorization": "Bearer   "})
        assert resp.status_code == 401


class TestUserAdministration:
    def test_list_requires_admin(self, client, admin, alice):
        assert client.get("/api/users", headers=auth_headers(alice)).status_code == 403
        resp = client.get("/api/users", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert {u["email"] for u in resp.json()["users"]} == {"admin@example.com", "alice@example.com"}
        assert all("password" not in u for u in resp.json()["users"])

    def test_admin_creates_manager(self, client, admin):
        resp = client.post("/api/users", json={
            "name": "Mia", "email": "mia@example.com", "password": "secret99", "role": "manager",
        }, headers=auth_headers(admin))
        assert resp.status_code == 201
        assert resp.json()["role"] == "manager"

    def test_get_self_or_admin_only(self, client, admin, alice, bob):
        url = f"/api/users/{alice['_id']}"
        assert client.get(url, headers=auth_headers(alice)).status_code == 200
        assert client.get(url, headers=auth_headers(admin)).status_code == 200
        assert client.get(url, headers=auth_headers(bob)).status_code == 403
        assert client.get(f"/api/users/{ObjectId()}", headers=auth_headers(admin)).status_code == 404

    def test_update_drops_role_email_password(self, client, db, alice):
        resp = client.put(f"/api/users/{alice['_id']}", json={
            "name": "Alice Cooper",
            "role": "admin",
            "email": "evil@example.com",
            "password": "changed!",
            "company": "Acme",
            "preferences": {"notifications": {"marketingEmails": True}},
        }, headers=auth_headers(alice))
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Alice Cooper"
        assert body["company"] == "Acme"
        assert body["role"] == "user"
        assert body["email"] == "alice@example.com"
        assert body["preferences"]["notifications"]["marketingEmails"] is True
        assert db[USERS].find_one({"_id": alice["_id"]})["password"] == alice["password"]

    def test_preference_flags_update_independently(self, client, db, alice):
        url = f"/api/users/{alice['_id']}"
        client.put(url, json={"preferences": {"notifications": {"orderUpdates": False}}}, headers=auth_headers(alice))
        resp = client.put(url, json={"preferences": {"notifications": {"marketingEmails": True}}}, headers=auth_headers(alice))
        assert resp.status_code == 200

        flags = resp.json()["preferences"]["notifications"]
        assert flags["orderUpdates"] is False
        assert flags["marketingEmails"] is True
        assert "securityAlerts" not in db[USERS].find_one({"_id": alice["_id"]})["preferences"]["notifications"]

    def test_delete(self, client, admin, alice):
        assert client.delete(f"/api/users/{alice['_id']}", headers=auth_headers(alice)).status_code == 403
        resp = client.delete(f"/api/users/{admin['_id']}", headers=auth_headers(admin))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete your own account"
        resp = client.delete(f"/api/users/{alice['_id']}", headers=auth_headers(admin))
        assert resp.json() == {"message": "User deleted successfully"}

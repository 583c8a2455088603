"""
Test Suite: HTTP API

End-to-end requests through FastAPI's TestClient against an in-memory SQLite
store. The AI service is replaced with a fake chat model.
"""
import pytest
import sys
import os
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from app.auth import get_draft_generator, get_record_store
from app.config import Settings, get_settings
from app.main import app
from app.services.affiliate_ledger import AffiliateLedger
from app.services.demo_data import initialize_demo_accounts
from app.services.draft_generator import DraftGenerator


class FakeChatModel:
    def __init__(self):
        self.prompts = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        return AIMessage(content="Dear Client Corp, please pay $5,000.")


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def client(sql_store, chat_model):
    app.dependency_overrides[get_settings] = lambda: Settings.from_env({"GOOGLE_API_KEY": "test-key"})
    app.dependency_overrides[get_record_store] = lambda: sql_store
    app.dependency_overrides[get_draft_generator] = lambda: DraftGenerator(chat_model)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _signup(client, email="alice@example.com", password="pw123456", **extra):
    response = client.post("/auth/signup", json={"email": email, "password": password, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def _login(client, email, password):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


LETTER = {
    "title": "Demand for Payment",
    "letter_type": "general_demand_letter",
    "template_data": {"Amount Owed": "5,000"},
}


class TestInfo:
    def test_root(self, client):
        assert client.get("/").json()["name"] == "LetterDesk"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestAuthEndpoints:
    def test_signup_returns_session(self, client):
        body = _signup(client)
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["role"] == "user"

    def test_duplicate_signup(self, client):
        _signup(client)
        response = client.post("/auth/signup", json={"email": "alice@example.com", "password": "x"})
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_account"

    def test_admin_signup_rejected(self, client):
        response = client.post("/auth/signup", json={"email": "a@example.com", "password": "x", "role": "admin"})
        assert response.status_code == 422

    def test_login_errors(self, client):
        _signup(client)
        unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert unknown.status_code == 404
        wrong = client.post("/auth/login", json={"email": "alice@example.com", "password": "x"})
        assert wrong.status_code == 401
        assert wrong.json()["code"] == "invalid_credentials"

    def test_me(self, client):
        token = _signup(client)["access_token"]
        response = client.get("/auth/me", headers=_auth(token))
        assert response.json()["email"] == "alice@example.com"

    def test_me_without_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "not_authenticated"

    def test_me_with_garbage_token(self, client):
        assert client.get("/auth/me", headers=_auth("garbage")).status_code == 401

    def test_logout_revokes_token(self, client):
        token = _signup(client)["access_token"]
        assert client.get("/auth/me", headers=_auth(token)).status_code == 200

        response = client.post("/auth/logout", headers=_auth(token))
        assert response.status_code == 200

        after = client.get("/auth/me", headers=_auth(token))
        assert after.status_code == 401
        assert after.json()["code"] == "not_authenticated"
        assert client.get("/letters", headers=_auth(token)).status_code == 401

        fresh = _login(client, "alice@example.com", "pw123456")
        assert client.get("/auth/me", headers=_auth(fresh)).status_code == 200

    def test_logout_requires_token(self, client):
        assert client.post("/auth/logout").status_code == 401

    def test_change_password(self, client):
        token = _signup(client)["access_token"]
        response = client.put(
            "/auth/password",
            json={"new_password": "newpass1", "confirm_password": "newpass1"},
            headers=_auth(token),
        )
        assert response.status_code == 200
        _login(client, "alice@example.com", "newpass1")

    def test_password_reset(self, client, sql_store):
        _signup(client)
        response = client.post("/auth/password-reset/request", json={"email": "alice@example.com"})
        assert response.status_code == 200
        [token] = sql_store.reset_tokens.get_all()

        confirm = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "reset123"})
        assert confirm.status_code == 200
        _login(client, "alice@example.com", "reset123")

        reused = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "again"})
        assert reused.status_code == 400
        assert reused.json()["code"] == "invalid_or_expired_token"

    def test_reset_request_for_unknown_email_looks_the_same(self, client):
        _signup(client)
        known = client.post("/auth/password-reset/request", json={"email": "alice@example.com"})
        unknown = client.post("/auth/password-reset/request", json={"email": "ghost@example.com"})
        assert known.json() == unknown.json()

    def test_signup_with_affiliate_code(self, client, sql_store):
        ledger = AffiliateLedger(sql_store)
        ledger.initialize_mock_affiliates()
        _signup(client, "referred@example.com", affiliate_code="emp123xyz")
        assert ledger.get_affiliate_data("employee@example.com").total_signups == 3


class TestLetterEndpoints:
    def test_crud(self, client):
        token = _signup(client)["access_token"]

        created = client.post("/letters", json=LETTER, headers=_auth(token))
        assert created.status_code == 201
        letter = created.json()
        assert letter["status"] == "draft"
        assert letter["created_at"] == letter["updated_at"]

        updated = client.put(f"/letters/{letter['id']}", json={"title": "Renamed"}, headers=_auth(token))
        assert updated.status_code == 200
        assert updated.json()["title"] == "Renamed"
        assert updated.json()["template_data"] == {"Amount Owed": "5,000"}
        assert datetime.fromisoformat(updated.json()["updated_at"]) > datetime.fromisoformat(letter["updated_at"])

        listed = client.get("/letters", headers=_auth(token)).json()
        assert [l["id"] for l in listed] == [letter["id"]]

        deleted = client.delete(f"/letters/{letter['id']}", headers=_auth(token))
        assert deleted.status_code == 204
        assert client.get("/letters", headers=_auth(token)).json() == []

    def test_status_workflow(self, client):
        token = _signup(client)["access_token"]
        letter_id = client.post("/letters", json=LETTER, headers=_auth(token)).json()["id"]

        ok = client.post(f"/letters/{letter_id}/status", json={"status": "submitted"}, headers=_auth(token))
        assert ok.json()["status"] == "submitted"

        skipped = client.post(f"/letters/{letter_id}/status", json={"status": "completed"}, headers=_auth(token))
        assert skipped.status_code == 409
        assert skipped.json()["code"] == "invalid_status_transition"

    def test_create_ignores_requested_status(self, client):
        token = _signup(client)["access_token"]
        created = client.post("/letters", json={**LETTER, "status": "approved"}, headers=_auth(token))
        assert created.status_code == 201
        assert created.json()["status"] == "draft"

        [listed] = client.get("/letters", headers=_auth(token)).json()
        assert listed["status"] == "draft"

    def test_other_users_letter_is_not_found(self, client):
        alice = _signup(client)["access_token"]
        bob = _signup(client, "bob@example.com")["access_token"]
        letter_id = client.post("/letters", json=LETTER, headers=_auth(alice)).json()["id"]

        response = client.delete(f"/letters/{letter_id}", headers=_auth(bob))
        assert response.status_code == 404
        assert response.json()["code"] == "remote_service_error.not_found"

    def test_letters_require_auth(self, client):
        assert client.get("/letters").status_code == 401

    def test_templates(self, client):
        templates = client.get("/letters/templates").json()
        assert [t["value"] for t in templates] == ["general_demand_letter", "cease_and_desist_harassment"]
        assert "Your Name" in templates[0]["placeholders"]
        assert set(templates[0]["required_fields"]) <= set(templates[0]["placeholders"])

    def test_draft_from_template(self, client, chat_model):
        token = _signup(client)["access_token"]
        response = client.post(
            "/letters/draft",
            json={
                "template": "general_demand_letter",
                "template_fields": {"Recipient's Full Name": "Client Corp", "Amount Owed": "5,000"},
                "tone": "Formal",
                "length": "Medium",
            },
            headers=_auth(token),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["content"] == "Dear Client Corp, please pay $5,000."
        assert body["missing_fields"] == ["Reason for Debt", "Deadline for Action"]
        assert "professional and formal" in chat_model.prompts[0]
        assert 'subject is "General Demand Letter"' in chat_model.prompts[0]

    def test_draft_title_and_custom_body(self, client, chat_model):
        token = _signup(client)["access_token"]
        titled = client.post(
            "/letters/draft",
            json={"template": "cease_and_desist_harassment", "title": "Stop the Calls"},
            headers=_auth(token),
        )
        assert titled.status_code == 200
        assert 'subject is "Stop the Calls"' in chat_model.prompts[-1]
        assert "CEASE AND DESIST" in chat_model.prompts[-1]

        custom = client.post(
            "/letters/draft",
            json={"template_body": "Dear [Name], thanks.", "template_fields": {"Name": "Bob"}},
            headers=_auth(token),
        )
        assert custom.status_code == 200
        assert custom.json()["missing_fields"] == []
        assert 'subject is "Untitled Letter"' in chat_model.prompts[-1]

    def test_draft_needs_template(self, client):
        token = _signup(client)["access_token"]
        assert client.post("/letters/draft", json={}, headers=_auth(token)).status_code == 400
        unknown = client.post("/letters/draft", json={"template": "nope"}, headers=_auth(token))
        assert unknown.status_code == 404


class TestAdminAndAffiliateEndpoints:
    def test_admin_lists(self, client, sql_store):
        initialize_demo_accounts(sql_store)
        alice = _signup(client)["access_token"]
        client.post("/letters", json=LETTER, headers=_auth(alice))

        admin = _login(client, "admin@example.com", "admin123")
        users = client.get("/admin/users", headers=_auth(admin)).json()
        assert "alice@example.com" in [u["email"] for u in users]
        assert all("password_hash" not in u for u in users)
        assert len(client.get("/admin/letters", headers=_auth(admin)).json()) == 1

    def test_user_forbidden(self, client):
        token = _signup(client)["access_token"]
        response = client.get("/admin/users", headers=_auth(token))
        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"

    def test_employee_stats(self, client, sql_store):
        initialize_demo_accounts(sql_store)
        AffiliateLedger(sql_store).initialize_mock_affiliates()
        token = _login(client, "employee@example.com", "employee123")
        stats = client.get("/affiliates/me", headers=_auth(token)).json()
        assert stats == {"code": "EMP123XYZ", "total_signups": 2, "total_earnings": 5.0, "total_points": 2}

    def test_admin_assigns_code(self, client, sql_store):
        initialize_demo_accounts(sql_store)
        admin = _login(client, "admin@example.com", "admin123")
        response = client.put(
            "/affiliates/employee@example.com/code", json={"code": "NEWCODE"}, headers=_auth(admin)
        )
        assert response.status_code == 200
        assert response.json()["code"] == "NEWCODE"

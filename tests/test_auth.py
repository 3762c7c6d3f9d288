import json
import re
from datetime import timedelta

import httpx
import pytest

from alphamarket.domain.clock import utcnow
from alphamarket.infrastructure.db.models import PasswordResetToken
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.notify.email import SendGridMailer, registration_email

PASSWORD = "secret123"


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "AlphaMarket API Running"
    assert client.get("/health").json() == {"status": "ok"}


def test_metrics_are_labelled_by_route_template(client):
    assert client.get("/api/strategies/missing-id").status_code == 404

    r = client.get("/metrics")
    assert r.status_code == 200
    assert 'am_requests_total{method="GET",path="/api/strategies/{strategy_id}",status="404"}' in r.text
    assert "missing-id" not in r.text



def test_register_investor_returns_token_and_sets_cookie(client):
    r = client.post("/api/auth/register", json={
        "username": "priya", "email": "Priya@Example.com", "password": PASSWORD,
    })
    assert r.status_code == 201
    data = r.json()
    assert data["token"]
    assert data["user"]["role"] == "investor"
    assert data["user"]["email"] == "priya@example.com"
    assert "password" not in data["user"]
    assert "am_session" in r.headers["set-cookie"]


def test_register_cannot_self_assign_admin(client):
    r = client.post("/api/auth/register", json={
        "username": "sneaky", "email": "sneaky@example.com", "password": PASSWORD, "role": "admin",
    })
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "investor"


def test_register_advisor_is_pending_approval(client, mailer):
    r = client.post("/api/auth/register", json={
        "username": "ria", "email": "ria@example.com", "password": PASSWORD, "role": "advisor",
        "companyName": "Ria Capital", "sebiRegNumber": "INA000012345",
    })
    assert r.status_code == 201
    user = r.json()["user"]
    assert user["role"] == "advisor"
    assert user["isRegistered"] is True
    assert user["isApproved"] is False
    assert user["sebiRegNumber"] == "INA000012345"

    # The admin is told about the new advisor once the response is out.
    to_email, subject, body = mailer.send.await_args.args
    assert to_email == "admin@alphamarket.test"
    assert subject == "New Advisor Registration: Ria Capital"
    assert "requires admin approval" in body


def test_register_rejects_duplicates_and_short_passwords(client, make_account):
    make_account("dup")
    r = client.post("/api/auth/register", json={"username": "dup", "email": "other@example.com", "password": PASSWORD})
    assert r.status_code == 400
    assert r.json()["detail"] == "Username already taken"

    r = client.post("/api/auth/register", json={"username": "dup2", "email": "DUP@example.com", "password": PASSWORD})
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"

    r = client.post("/api/auth/register", json={"username": "shorty", "email": "shorty@example.com", "password": "123"})
    assert r.status_code == 400
    assert "at least 6" in r.json()["detail"]


def test_login_and_me(client, investor):
    r = client.post("/api/auth/login", json={"username": "investor1", "password": PASSWORD})
    assert r.status_code == 200
    token = r.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == investor.id

    bad = client.post("/api/auth/login", json={"username": "investor1", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.json()["detail"] == "Invalid credentials"


def test_me_requires_a_valid_session(client):
    assert client.get("/api/auth/me").status_code == 401
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"


def test_logout(client):
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_forgot_password_for_unknown_email_sends_nothing(client, mailer):
    r = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    mailer.send.assert_not_awaited()


def test_reset_email_goes_out_after_the_token_is_committed(client, investor, mailer):
    seen = []

    async def send(to_email, subject, body):
        with session_scope() as session:
            seen.append(session.query(PasswordResetToken).count())
        return {"status": "sent", "message_id": "msg-2"}

    mailer.send.side_effect = send
    assert client.post("/api/auth/forgot-password", json={"email": "investor1@example.com"}).status_code == 200
    assert seen == [1]


def test_password_reset_flow(client, investor, mailer):
    r = client.post("/api/auth/forgot-password", json={"email": "INVESTOR1@example.com"})
    assert r.status_code == 200

    to_email, subject, body = mailer.send.await_args.args
    assert to_email == "investor1@example.com"
    assert "reset-password?token=" in body
    token = re.search(r"token=([\w-]+)", body).group(1)

    r = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert r.status_code == 200
    assert client.post("/api/auth/login", json={"username": "investor1", "password": "brand-new-pass"}).status_code == 200
    assert client.post("/api/auth/login", json={"username": "investor1", "password": PASSWORD}).status_code == 401

    # Reset links are single use.
    again = client.post("/api/auth/reset-password", json={"token": token, "password": "another-pass"})
    assert again.status_code == 400
    assert again.json()["detail"] == "Invalid or expired reset link"


def test_expired_reset_token_is_rejected(client, investor):
    with session_scope() as session:
        session.add(PasswordResetToken(user_id=investor.id, token="stale-token", expires_at=utcnow() - timedelta(minutes=1)))

    r = client.post("/api/auth/reset-password", json={"token": "stale-token", "password": "brand-new-pass"})
    assert r.status_code == 400


# --- Mail ---

def test_registration_email_escapes_user_input():
    subject, body = registration_email({"username": "<b>eve</b>", "email": "eve@example.com", "role": "investor"})
    assert subject == "New Investor Registration: <b>eve</b>"
    assert "&lt;b&gt;eve&lt;/b&gt;" in body
    assert "requires admin approval" not in body


@pytest.mark.asyncio
async def test_sendgrid_mailer():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer sg-key"
        return httpx.Response(202, headers={"X-Message-Id": "abc"})

    mailer = SendGridMailer("sg-key", "noreply@alphamarket.in", transport=httpx.MockTransport(handler))
    assert await mailer.send("a@example.com", "Hi", "<p>Hello</p>") == {"status": "sent", "message_id": "abc"}
    assert sent[0]["personalizations"] == [{"to": [{"email": "a@example.com"}], "subject": "Hi"}]
    assert sent[0]["from"] == {"email": "noreply@alphamarket.in"}

    rejecting = SendGridMailer("sg-key", "noreply@alphamarket.in", transport=httpx.MockTransport(lambda r: httpx.Response(401, text="bad key")))
    result = await rejecting.send("a@example.com", "Hi", "<p>Hello</p>")
    assert result["status"] == "failed"
    assert "401" in result["error"]

    assert (await SendGridMailer(None, "noreply@alphamarket.in").send("a@example.com", "Hi", "x"))["status"] == "failed"

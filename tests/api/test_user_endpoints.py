# This file tests the account endpoints: signup, verification, login and password flows.
# Outbound email and SMS are replaced by recorders so links and codes can be read back.
# Users that do not go through signup are inserted directly with verified flags.

from __future__ import annotations

import re
import smtplib

import pytest

from marketplace_api.app.services.email_service import EmailService
from marketplace_api.app.services.sms_service import SmsService
from tests.api.support import PASSWORD, api_test_client, auth_headers, find_user, make_user

SIGNUP_PAYLOAD = {
    "name": "Nino",
    "email": "Nino@Example.com",
    "phone": "+995 555 123 456",
    "password": PASSWORD,
    "passwordConfirm": PASSWORD,
}


@pytest.fixture
def outbox(monkeypatch: pytest.MonkeyPatch) -> dict[str, list]:
    sent: dict[str, list] = {"email": [], "sms": []}

    async def fake_email(to: str, subject: str, text: str) -> None:
        sent["email"].append({"to": to, "subject": subject, "text": text})

    async def fake_sms(to: str, text: str) -> bool:
        sent["sms"].append({"to": to, "text": text})
        return True

    monkeypatch.setattr(EmailService, "send", fake_email)
    monkeypatch.setattr(SmsService, "send", fake_sms)
    return sent


def _link_token(text: str, route: str) -> str:
    match = re.search(rf"{route}/([0-9a-f]{{64}})", text)
    assert match, text
    return match.group(1)


def test_signup_verify_and_login(outbox: dict[str, list]) -> None:
    with api_test_client() as client:
        response = client.post("/api/v1/users/signup", json=SIGNUP_PAYLOAD)
        assert response.status_code == 201
        user = response.json()["data"]["user"]
        assert user["email"] == "nino@example.com"
        assert user["phone"] == "+995555123456"
        assert user["role"] == "customer"
        assert user["isEmailVerified"] is False
        assert "password" not in user
        assert "emailVerificationToken" not in user

        blocked = client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": PASSWORD})
        assert blocked.status_code == 400

        token = _link_token(outbox["email"][0]["text"], "verify-email")
        verified = client.get(f"/api/v1/users/verify-email/{token}")
        assert verified.status_code == 200
        assert verified.json()["data"]["user"]["isEmailVerified"] is True

        again = client.get(f"/api/v1/users/verify-email/{token}")
        assert again.status_code == 400

        login = client.post("/api/v1/users/login", json={"email": "NINO@example.com", "password": PASSWORD})
        assert login.status_code == 200
        body = login.json()
        assert body["status"] == "success"
        assert body["token"]
        assert login.cookies.get("token") == body["token"]

        me = client.get("/api/v1/users/me")
        assert me.status_code == 200
        assert me.json()["data"]["user"]["email"] == "nino@example.com"


def test_signup_texts_phone_code_that_verifies_phone(outbox: dict[str, list]) -> None:
    with api_test_client() as client:
        client.post("/api/v1/users/signup", json=SIGNUP_PAYLOAD)
        assert outbox["sms"][0]["to"] == "+995555123456"
        code = re.search(r"\b(\d{6})\b", outbox["sms"][0]["text"]).group(1)

        wrong = client.post("/api/v1/users/verify-phone", json={"phone": "+995555123456", "code": "000000"})
        assert wrong.status_code == 400

        response = client.post("/api/v1/users/verify-phone", json={"phone": "555 12 34 56", "code": code})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["isPhoneVerified"] is True

    stored = find_user("nino@example.com")
    assert "phoneVerificationCode" not in stored


def test_resend_phone_code_requires_login(outbox: dict[str, list]) -> None:
    user = make_user(verified=False)

    with api_test_client() as client:
        assert client.post("/api/v1/users/resend-phone-code").status_code == 401

        response = client.post("/api/v1/users/resend-phone-code", headers=auth_headers(user))
        assert response.status_code == 200
        assert len(outbox["sms"]) == 1

    assert find_user(user["email"])["phoneVerificationCode"]


def test_signup_rejects_duplicates_and_bad_input(outbox: dict[str, list]) -> None:
    with api_test_client() as client:
        assert client.post("/api/v1/users/signup", json=SIGNUP_PAYLOAD).status_code == 201

        duplicate = client.post("/api/v1/users/signup", json=SIGNUP_PAYLOAD)
        assert duplicate.status_code == 400
        assert duplicate.json()["status"] == "fail"

        same_phone = client.post(
            "/api/v1/users/signup",
            json={**SIGNUP_PAYLOAD, "email": "second@example.com", "phone": "995555123456"},
        )
        assert same_phone.status_code == 400

        mismatch = client.post(
            "/api/v1/users/signup",
            json={**SIGNUP_PAYLOAD, "email": "other@example.com", "phone": "+995577000000", "passwordConfirm": "Other#1234"},
        )
        assert mismatch.status_code == 400
        assert mismatch.json()["message"].startswith("Invalid input data.")

        weak = client.post(
            "/api/v1/users/signup",
            json={**SIGNUP_PAYLOAD, "email": "weak@example.com", "password": "password", "passwordConfirm": "password"},
        )
        assert weak.status_code == 400

        bad_phone = client.post("/api/v1/users/signup", json={**SIGNUP_PAYLOAD, "email": "p@example.com", "phone": "12345"})
        assert bad_phone.status_code == 400

        admin = client.post(
            "/api/v1/users/signup",
            json={**SIGNUP_PAYLOAD, "email": "admin@example.com", "phone": "+995577000001", "role": "admin"},
        )
        assert admin.status_code == 400


def test_login_errors() -> None:
    make_user()

    with api_test_client() as client:
        missing = client.post("/api/v1/users/login", json={"email": "nino@example.com"})
        assert missing.status_code == 400
        assert missing.json()["message"] == "Please provide email and password!"

        wrong = client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": "Wrong#1234"})
        assert wrong.status_code == 401

        unknown = client.post("/api/v1/users/login", json={"email": "nobody@example.com", "password": PASSWORD})
        assert unknown.status_code == 401


def test_logout_clears_cookie() -> None:
    make_user()

    with api_test_client() as client:
        client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": PASSWORD})
        assert client.get("/api/v1/users/me").status_code == 200

        assert client.post("/api/v1/users/logout").status_code == 200
        assert client.get("/api/v1/users/me").status_code == 401


def test_invalid_token_is_rejected() -> None:
    with api_test_client() as client:
        response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer nonsense"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token. Please log in again!"


def test_forgot_and_reset_password(outbox: dict[str, list]) -> None:
    make_user()

    with api_test_client() as client:
        assert client.post("/api/v1/users/forgotPassword", json={"email": "nobody@example.com"}).status_code == 404

        response = client.post("/api/v1/users/forgotPassword", json={"email": "nino@example.com"})
        assert response.status_code == 200
        token = _link_token(outbox["email"][0]["text"], "resetPassword")

        new_password = "Fresh#5678"
        reset = client.patch(
            f"/api/v1/users/resetPassword/{token}",
            json={"password": new_password, "passwordConfirm": new_password},
        )
        assert reset.status_code == 200
        assert reset.json()["token"]

        reused = client.patch(
            f"/api/v1/users/resetPassword/{token}",
            json={"password": new_password, "passwordConfirm": new_password},
        )
        assert reused.status_code == 400

        old = client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": PASSWORD})
        assert old.status_code == 401
        new = client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": new_password})
        assert new.status_code == 200


def test_forgot_password_mail_failure_discards_token(monkeypatch: pytest.MonkeyPatch) -> None:
    make_user()

    async def failing_email(to: str, subject: str, text: str) -> None:
        raise smtplib.SMTPException("relay refused")

    monkeypatch.setattr(EmailService, "send", failing_email)

    with api_test_client() as client:
        response = client.post("/api/v1/users/forgotPassword", json={"email": "nino@example.com"})

    assert response.status_code == 500
    assert response.json()["status"] == "error"
    assert "passwordResetToken" not in find_user("nino@example.com")


def test_update_my_password() -> None:
    user = make_user()
    new_password = "Changed#999"

    with api_test_client() as client:
        wrong = client.patch(
            "/api/v1/users/updateMyPassword",
            headers=auth_headers(user),
            json={"currentPassword": "Nope#12345", "newPassword": new_password, "passwordConfirm": new_password},
        )
        assert wrong.status_code == 401

        response = client.patch(
            "/api/v1/users/updateMyPassword",
            headers=auth_headers(user),
            json={"currentPassword": PASSWORD, "newPassword": new_password, "passwordConfirm": new_password},
        )
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200

        login = client.post("/api/v1/users/login", json={"email": "nino@example.com", "password": new_password})
        assert login.status_code == 200

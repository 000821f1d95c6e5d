from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from conftest import PNG_BYTES, FailingMailer, b64, bearer

from models import Account, OtpChallenge
from server import create_app
from time_utils import ensure_timezone
from verification import OTP_EXPIRED, OTP_INCORRECT, OTP_NOT_FOUND, issue_otp, verify_otp


def test_register_basic_sends_otp(api, mailer):
    res = api.register_basic("new@college.com")
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["email"] == "new@college.com"
    assert mailer.last_otp("new@college.com") is not None


def test_register_basic_reports_missing_fields(client):
    res = client.post("/api/auth/register-basic", json={"email": "x@college.com"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"].startswith("Missing required fields:")
    assert "firstName" in body["message"]


def test_register_basic_rejects_bad_aadhaar(api):
    res = api.register_basic("aadhaar@college.com", aadhaarNumber="1234")
    assert res.status_code == 400
    assert res.json()["message"] == "Aadhaar number must be 12 digits"


def test_otp_expires_exactly_ten_minutes_after_issue(api, app, db_session, mailer):
    api.register_basic("expiry@college.com")
    challenge = db_session.query(OtpChallenge).filter(OtpChallenge.email == "expiry@college.com").one()
    issued = ensure_timezone(challenge.issued_at)
    assert ensure_timezone(challenge.expires_at) - issued == timedelta(minutes=10)


def test_expired_otp_rejected_even_when_correct(app, db_session, mailer, settings):
    db_session.add(Account(email="late@college.com", password_hash="x", first_name="Late"))
    db_session.commit()
    challenge = issue_otp(db_session, mailer, settings, "late@college.com")
    code = mailer.last_otp("late@college.com")
    issued = ensure_timezone(challenge.issued_at)

    with pytest.raises(HTTPException) as excinfo:
        verify_otp(db_session, "late@college.com", code, now=issued + timedelta(minutes=10))
    assert excinfo.value.detail == OTP_EXPIRED

    verify_otp(db_session, "late@college.com", code, now=issued + timedelta(minutes=9, seconds=59))
    account = db_session.query(Account).filter(Account.email == "late@college.com").one()
    assert account.otp_verified is True


def test_wrong_otp_rejected(api, client):
    api.register_basic("wrong@college.com")
    res = client.post("/api/auth/verify-otp", json={"email": "wrong@college.com", "otp": "000000x"})
    assert res.status_code == 400
    assert res.json()["message"] == OTP_INCORRECT


def test_login_requires_otp_then_documents(api, client, mailer):
    email = "flow@college.com"
    api.register_basic(email)

    res = api.login(email, "secret-pass")
    assert res.status_code == 403
    body = res.json()
    assert body["requiresOTP"] is True
    assert body["requiresDocs"] is False
    assert body["registrationPending"] is True

    res = client.post("/api/auth/verify-otp", json={"email": email, "otp": mailer.last_otp(email)})
    token = res.json()["data"]["token"]

    res = api.login(email, "secret-pass")
    assert res.status_code == 403
    body = res.json()
    assert body["requiresOTP"] is False
    assert body["requiresDocs"] is True

    res = client.post(
        "/api/auth/register-complete",
        json={"collegeIdBase64": b64(PNG_BYTES), "selfieBase64": b64(PNG_BYTES)},
        headers=bearer(token),
    )
    assert res.status_code == 200
    assert res.json()["data"]["collegeIdUrl"].startswith("https://files.test/")

    res = api.login(email, "secret-pass")
    assert res.status_code == 200
    assert res.json()["data"]["user"]["isVerified"] is True


def test_wrong_password_hides_registration_state(api):
    api.register_basic("hidden@college.com")
    res = api.login("hidden@college.com", "not-the-password")
    assert res.status_code == 401
    body = res.json()
    assert body["message"] == "Invalid email or password"
    assert "requiresOTP" not in body


def test_register_complete_needs_both_documents(api, client, mailer):
    email = "docs@college.com"
    api.register_basic(email)
    res = client.post("/api/auth/verify-otp", json={"email": email, "otp": mailer.last_otp(email)})
    token = res.json()["data"]["token"]

    res = client.post(
        "/api/auth/register-complete",
        json={"collegeIdBase64": b64(PNG_BYTES)},
        headers=bearer(token),
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Both college ID and selfie images are required"


def test_registered_email_cannot_register_again(api):
    student = api.register_student()
    res = api.register_basic(student["email"])
    assert res.status_code == 409


def test_resend_otp_unknown_email(client):
    res = client.post("/api/auth/resend-otp", json={"email": "nobody@college.com"})
    assert res.status_code == 404


def test_resend_otp_issues_new_code(api, client, mailer):
    api.register_basic("resend@college.com")
    before = len(mailer.sent)
    res = client.post("/api/auth/resend-otp", json={"email": "resend@college.com"})
    assert res.status_code == 200
    assert len(mailer.sent) == before + 1


def test_me_requires_token(client, api):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["message"] == "Not authorized, no token"

    student = api.register_student()
    res = client.get("/api/auth/me", headers=student["headers"])
    assert res.status_code == 200
    assert res.json()["data"]["email"] == student["email"]
    assert res.json()["data"]["aadhaarMasked"] == "XXXXXXXX1234"


def test_registration_token_is_not_an_access_token(api, client, mailer):
    email = "regtoken@college.com"
    res = api.register_basic(email)
    token = res.json()["data"]["token"]
    res = client.get("/api/auth/me", headers=bearer(token))
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token type"


def test_students_cannot_reach_admin_routes(api, client):
    student = api.register_student()
    res = client.get("/api/events/admin", headers=student["headers"])
    assert res.status_code == 403
    assert res.json()["message"] == "Access denied. Required: admin"


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/api/does-not-exist")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Not Found"}


def test_only_latest_otp_is_accepted_after_resend(api, client, mailer):
    email = "latest@college.com"
    api.register_basic(email)
    old_code = mailer.last_otp(email)
    client.post("/api/auth/resend-otp", json={"email": email})
    new_code = mailer.last_otp(email)
    assert old_code != new_code

    res = client.post("/api/auth/verify-otp", json={"email": email, "otp": old_code})
    assert res.status_code == 400
    assert res.json()["message"] == OTP_INCORRECT

    res = client.post("/api/auth/verify-otp", json={"email": email, "otp": new_code})
    assert res.status_code == 200


def test_used_otp_cannot_be_replayed(api, client, mailer):
    email = "replay@college.com"
    api.register_basic(email)
    code = mailer.last_otp(email)
    assert client.post("/api/auth/verify-otp", json={"email": email, "otp": code}).status_code == 200

    res = client.post("/api/auth/verify-otp", json={"email": email, "otp": code})
    assert res.status_code == 400
    assert res.json()["message"] == OTP_NOT_FOUND


def test_resend_inside_cooldown_is_throttled(api, client, settings, mailer):
    settings.otp_resend_cooldown_seconds = 60
    api.register_basic("cooldown@college.com")
    before = len(mailer.sent)

    res = client.post("/api/auth/resend-otp", json={"email": "cooldown@college.com"})
    assert res.status_code == 429
    assert res.json()["message"] == "Please wait before requesting a new OTP"
    assert len(mailer.sent) == before


def test_register_basic_retry_overwrites_pending_row(api, db_session):
    email = "retry@college.com"
    api.register_basic(email, firstName="First")
    res = api.register_basic(email, firstName="Second")
    assert res.status_code == 201

    rows = db_session.query(Account).filter(Account.email == email).all()
    assert len(rows) == 1
    assert rows[0].first_name == "Second"
    assert db_session.query(OtpChallenge).filter(OtpChallenge.email == email).count() == 1


def test_otp_email_failure_returns_500(settings, storage):
    app = create_app(settings=settings, mailer=FailingMailer(), storage=storage)
    with TestClient(app) as client:
        res = client.post(
            "/api/auth/register-basic",
            json={
                "firstName": "Mail",
                "lastName": "Down",
                "dob": "2003-04-05",
                "phone": "9876543210",
                "aadhaarNumber": "123412341234",
                "email": "maildown@college.com",
                "password": "secret-pass",
            },
        )
    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Failed to send OTP email"}


def test_account_payload_carries_role_label(api, client):
    student = api.register_student()
    res = client.get("/api/auth/me", headers=student["headers"])
    assert res.json()["data"]["roleLabel"] == "Student"

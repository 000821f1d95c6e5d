from pathlib import Path
import base64
import re
import sys
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from config import S3Config, Settings
from server import create_app
from storage import S3Storage
from time_utils import now_tz

ADMIN_EMAIL = "admin@endloop.com"
ADMIN_PASSWORD = "admin-pass-123"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF_BYTES = b"%PDF-1.4\n%test document\n"
OTP_RE = re.compile(r"one-time password is (\d{6})")


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html, text):
        self.sent.append({"to": to_email, "subject": subject, "html": html, "text": text})

    def last_otp(self, email):
        for message in reversed(self.sent):
            if message["to"] == email:
                match = OTP_RE.search(message["text"])
                if match:
                    return match.group(1)
        return None


class FailingMailer(FakeMailer):
    def send(self, to_email, subject, html, text):
        raise RuntimeError("smtp down")


class FakeStorage(S3Storage):
    def __init__(self):
        super().__init__(S3Config(), max_bytes=1024 * 1024)
        self.objects = {}

    def _put_object(self, key, data, content_type):
        self.objects[key] = (data, content_type)
        return f"https://files.test/{key}"


def b64(data):
    return base64.b64encode(data).decode("ascii")


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class PlatformClient:
    """Drives the API through the same steps a browser client would."""

    def __init__(self, client, mailer):
        self.client = client
        self.mailer = mailer
        self._counter = 0

    def _next(self):
        self._counter += 1
        return self._counter

    def register_basic(self, email, **overrides):
        payload = {
            "firstName": "Test",
            "lastName": "Student",
            "dob": "2003-04-05",
            "phone": "9876543210",
            "aadhaarNumber": "123412341234",
            "email": email,
            "password": "secret-pass",
        }
        payload.update(overrides)
        return self.client.post("/api/auth/register-basic", json=payload)

    def register_student(self, email=None, first_name="Test"):
        email = email or f"student{self._next()}@college.com"
        res = self.register_basic(email, firstName=first_name)
        assert res.status_code == 201, res.text
        otp = self.mailer.last_otp(email)
        res = self.client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})
        assert res.status_code == 200, res.text
        token = res.json()["data"]["token"]
        res = self.client.post(
            "/api/auth/register-complete",
            json={"collegeIdBase64": b64(PNG_BYTES), "selfieBase64": b64(PNG_BYTES)},
            headers=bearer(token),
        )
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        return {"id": data["user"]["id"], "email": email, "headers": bearer(data["token"])}

    def login(self, email, password):
        return self.client.post("/api/auth/login", json={"email": email, "password": password})

    def admin_headers(self):
        res = self.login(ADMIN_EMAIL, ADMIN_PASSWORD)
        assert res.status_code == 200, res.text
        return bearer(res.json()["data"]["token"])

    def create_event(self, admin_headers, open_registration=True, **overrides):
        now = now_tz()
        payload = {
            "title": f"Hackathon {self._next()}",
            "description": "Build something",
            "registrationDeadline": (now + timedelta(days=7)).isoformat(),
            "pptSubmissionDeadline": (now + timedelta(days=14)).isoformat(),
            "minTeamSize": 1,
            "maxTeamSize": 4,
            "allowIndividual": True,
            "meals": ["Breakfast", "Lunch"],
            "teamsToShortlist": 2,
        }
        payload.update(overrides)
        res = self.client.post("/api/events", json=payload, headers=admin_headers)
        assert res.status_code == 201, res.text
        event = res.json()["data"]
        if open_registration:
            event = self.set_status(admin_headers, event["id"], "registration_open")
        return event

    def set_status(self, admin_headers, event_id, status):
        res = self.client.patch(f"/api/events/{event_id}", json={"status": status}, headers=admin_headers)
        assert res.status_code == 200, res.text
        return res.json()["data"]

    def create_team(self, leader, event_id, team_name=None, members=()):
        return self.client.post(
            "/api/teams",
            json={
                "eventId": event_id,
                "teamName": team_name or f"Team {self._next()}",
                "memberEmails": [member["email"] for member in members],
            },
            headers=leader["headers"],
        )

    def confirmed_team(self, event_id, size=1):
        leader = self.register_student()
        members = [self.register_student() for _ in range(size - 1)]
        res = self.create_team(leader, event_id, members=members)
        assert res.status_code == 201, res.text
        team = res.json()["data"]
        for member in members:
            accepted = self.client.post(f"/api/teams/{team['id']}/accept", headers=member["headers"])
            assert accepted.status_code == 200, accepted.text
        return {"id": team["id"], "leader": leader, "members": members}

    def score_ppt(self, admin_headers, event_id, team_id, value, **weights):
        payload = {
            "eventId": event_id,
            "teamId": team_id,
            "innovation": value,
            "feasibility": value,
            "technicalDepth": value,
            "presentationClarity": value,
            "socialImpact": value,
        }
        payload.update(weights)
        return self.client.post("/api/shortlist/score", json=payload, headers=admin_headers)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret_key="test-secret-key-for-the-hackathon-platform-0123456789",
        bcrypt_rounds=4,
        otp_resend_cooldown_seconds=0,
        default_admin_email=ADMIN_EMAIL,
        default_admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def app(settings, mailer, storage):
    return create_app(settings=settings, mailer=mailer, storage=storage)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api(client, mailer):
    return PlatformClient(client, mailer)


@pytest.fixture
def db_session(app, client):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()

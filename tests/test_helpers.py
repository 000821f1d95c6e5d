from pathlib import Path
import base64
import sys
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from config import Settings, validate_jwt_secret
from email_tokens import generate_otp_code, generate_qr_token, hash_token, token_matches
from encryption import FieldEncryptor, mask_identity_number
from errors import validation_message
from models import AccountRole
from qr_codes import is_resolvable_prefix, normalize_token, render_qr_png
from security import ROLE_LABELS, role_label
from storage import decode_base64_payload, resolve_content_type
from time_utils import app_timezone, configure_timezone, ensure_timezone, now_tz

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8


def test_every_role_has_a_label():
    for role in AccountRole:
        assert role in ROLE_LABELS
    assert role_label(AccountRole.JUDGE) == "Judge"


def test_validation_message_lists_missing_fields():
    errors = [
        {"type": "missing", "loc": ("body", "email"), "msg": "Field required"},
        {"type": "missing", "loc": ("body", "password"), "msg": "Field required"},
    ]
    assert validation_message(errors) == "Missing required fields: email, password"


def test_validation_message_strips_value_error_prefix():
    errors = [{"type": "value_error", "loc": ("body", "aadhaarNumber"), "msg": "Value error, Aadhaar number must be 12 digits"}]
    assert validation_message(errors) == "Aadhaar number must be 12 digits"


def test_weak_jwt_secret_rejected():
    with pytest.raises(RuntimeError):
        validate_jwt_secret("short")
    assert validate_jwt_secret("x" * 40) == "x" * 40


def test_otp_codes_are_six_digits():
    code = generate_otp_code()
    assert len(code) == 6 and code.isdigit()


def test_token_hash_matches():
    digest = hash_token("123456")
    assert token_matches("123456", digest)
    assert not token_matches("654321", digest)
    assert not token_matches("123456", None)


def test_qr_tokens_are_unique_hex():
    first = generate_qr_token("entry-1", 7)
    second = generate_qr_token("entry-1", 7)
    assert first != second
    assert len(first) == 64
    int(first, 16)


def test_field_encryption_round_trip_and_mask():
    encryptor = FieldEncryptor(None, "fallback-secret-that-is-long-enough-000")
    token = encryptor.encrypt("123412341234")
    assert token != "123412341234"
    assert encryptor.decrypt(token) == "123412341234"
    assert encryptor.encrypt("") is None
    assert mask_identity_number("123412341234") == "XXXXXXXX1234"


def test_decode_data_url_payload():
    value = "data:image/png;base64," + base64.b64encode(PNG).decode()
    data, declared = decode_base64_payload(value, max_bytes=1024)
    assert data == PNG
    assert declared == "image/png"
    assert resolve_content_type(data, declared, "selfie") == "image/png"


def test_decode_rejects_bad_input():
    with pytest.raises(HTTPException) as excinfo:
        decode_base64_payload("", max_bytes=1024)
    assert excinfo.value.detail == "File data is required"

    with pytest.raises(HTTPException) as excinfo:
        decode_base64_payload("not base64!!", max_bytes=1024)
    assert excinfo.value.detail == "Invalid base64 file data"

    big = base64.b64encode(b"a" * (2 * 1024 * 1024 + 1)).decode()
    with pytest.raises(HTTPException) as excinfo:
        decode_base64_payload(big, max_bytes=2 * 1024 * 1024)
    assert excinfo.value.detail == "File size exceeds 2MB limit"


def test_pdf_is_not_a_valid_selfie():
    with pytest.raises(HTTPException) as excinfo:
        resolve_content_type(b"%PDF-1.4", None, "selfie")
    assert excinfo.value.detail == "Invalid file type"


def test_normalize_token_strips_scanner_noise():
    token = "ab" * 32
    assert normalize_token(f"  {token.upper()}\n") == token
    assert normalize_token("{" + token + "}") == token
    assert normalize_token("   ") is None
    assert normalize_token(None) is None


def test_prefix_resolution_bounds():
    assert is_resolvable_prefix("a" * 32)
    assert not is_resolvable_prefix("a" * 31)
    assert not is_resolvable_prefix("a" * 64)
    assert not is_resolvable_prefix("z" * 40)


def test_render_qr_png():
    assert render_qr_png("ab" * 32).startswith(b"\x89PNG")


def test_timezone_comes_from_settings():
    try:
        configure_timezone("Asia/Kolkata")
        assert now_tz().utcoffset() == timedelta(hours=5, minutes=30)
        stored = ensure_timezone(datetime(2026, 3, 1, 9, 30))
        assert stored.tzinfo == app_timezone()
        assert stored.hour == 9
    finally:
        configure_timezone("UTC")


def test_unknown_timezone_rejected():
    with pytest.raises(RuntimeError, match="Invalid APP_TIMEZONE"):
        Settings(database_url="sqlite://", jwt_secret_key="x" * 40, timezone="Mars/Olympus")

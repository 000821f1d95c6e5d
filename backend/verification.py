import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from auth import get_password_hash
from config import Settings
from email_templates import build_otp_email
from email_tokens import generate_otp_code, hash_token, token_matches
from encryption import FieldEncryptor
from errors import ApiError
from models import Account, AccountRole, OtpChallenge
from schemas import RegisterBasicRequest
from time_utils import ensure_timezone, now_tz

logger = logging.getLogger(__name__)

OTP_NOT_FOUND = "OTP not found. Please request a new one."
OTP_EXPIRED = "OTP has expired. Please request a new one."
OTP_INCORRECT = "Incorrect OTP"
ALREADY_REGISTERED = "Email already registered. Please login."


def _account_by_email(db: Session, email: str) -> Optional[Account]:
    return db.query(Account).filter(Account.email == email).first()


def is_active(account: Account) -> bool:
    return account.role != AccountRole.STUDENT or account.is_verified


def save_basic_details(db: Session, settings: Settings, encryptor: FieldEncryptor, data: RegisterBasicRequest) -> Account:
    """Create or refresh the student account for ``data.email``; repeat calls overwrite the same row."""
    account = _account_by_email(db, data.email)
    if account and is_active(account):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_REGISTERED)

    if account is None:
        account = Account(email=data.email, role=AccountRole.STUDENT)
        db.add(account)

    account.first_name = data.first_name
    account.last_name = data.last_name
    account.dob = data.dob
    account.phone = data.phone
    account.aadhaar_encrypted = encryptor.encrypt(data.aadhaar_number)
    account.password_hash = get_password_hash(data.password, rounds=settings.bcrypt_rounds)
    account.otp_verified = False
    account.college_id_url = None
    account.selfie_url = None
    db.commit()
    db.refresh(account)
    return account


def issue_otp(db: Session, mailer, settings: Settings, email: str, now: Optional[datetime] = None) -> OtpChallenge:
    now = now or now_tz()
    code = generate_otp_code()

    challenge = db.query(OtpChallenge).filter(OtpChallenge.email == email).first()
    if challenge is None:
        challenge = OtpChallenge(email=email)
        db.add(challenge)
    challenge.code_hash = hash_token(code)
    challenge.issued_at = now
    challenge.expires_at = now + timedelta(seconds=settings.otp_ttl_seconds)
    challenge.used = False
    db.commit()

    subject, html, text = build_otp_email(code, validity_minutes=max(settings.otp_ttl_seconds // 60, 1))
    try:
        mailer.send(email, subject, html, text)
    except Exception as exc:
        logger.error("Failed to send OTP email to %s: %s", email, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send OTP email")
    return challenge


def check_resend_cooldown(db: Session, settings: Settings, email: str, now: Optional[datetime] = None) -> None:
    if settings.otp_resend_cooldown_seconds <= 0:
        return
    challenge = db.query(OtpChallenge).filter(OtpChallenge.email == email).first()
    if not challenge or not challenge.issued_at:
        return
    now = now or now_tz()
    elapsed = (now - ensure_timezone(challenge.issued_at)).total_seconds()
    if elapsed < settings.otp_resend_cooldown_seconds:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Please wait before requesting a new OTP")


def verify_otp(db: Session, email: str, code: str, now: Optional[datetime] = None) -> OtpChallenge:
    now = now or now_tz()
    challenge = (
        db.query(OtpChallenge)
        .filter(OtpChallenge.email == email, OtpChallenge.used.is_(False))
        .first()
    )
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=OTP_NOT_FOUND)
    # expiry wins over a correct code
    if now >= ensure_timezone(challenge.expires_at):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=OTP_EXPIRED)
    if not token_matches(code.strip(), challenge.code_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=OTP_INCORRECT)

    challenge.used = True
    account = _account_by_email(db, email)
    if account is not None:
        account.otp_verified = True
    db.commit()
    return challenge


def login_block(account: Account) -> Optional[Dict[str, bool]]:
    """Flags telling a student which registration step is still missing, or None when login may proceed."""
    if account.role != AccountRole.STUDENT:
        return None
    if not account.otp_verified:
        return {"requiresOTP": True, "requiresDocs": False, "registrationPending": True}
    if not account.documents_uploaded:
        return {"requiresOTP": False, "requiresDocs": True, "registrationPending": True}
    return None


def ensure_login_allowed(account: Account) -> None:
    flags = login_block(account)
    if flags is None:
        return
    message = (
        "Please verify your email OTP to continue registration."
        if flags["requiresOTP"]
        else "Please complete registration by uploading your documents."
    )
    raise ApiError(status.HTTP_403_FORBIDDEN, message, extra=flags)

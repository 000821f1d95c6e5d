import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth import create_access_token, create_registration_token, get_current_account, token_claims, verify_password
from config import Settings
from database import get_db
from dependencies import get_encryptor, get_mailer, get_settings, get_storage
from encryption import FieldEncryptor, mask_identity_number
from models import Account
from routers.shared import build_account_payload
from schemas import EmailRequest, LoginRequest, RegisterBasicRequest, RegisterCompleteRequest, VerifyOtpRequest
from security import require_registering_account
from storage import S3Storage
from verification import (
    check_resend_cooldown,
    ensure_login_allowed,
    is_active,
    issue_otp,
    save_basic_details,
    verify_otp,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/register-basic", status_code=status.HTTP_201_CREATED)
def register_basic(
    payload: RegisterBasicRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer=Depends(get_mailer),
    encryptor: FieldEncryptor = Depends(get_encryptor),
):
    account = save_basic_details(db, settings, encryptor, payload)
    issue_otp(db, mailer, settings, account.email)
    token = create_registration_token(settings, token_claims(account))
    return {
        "success": True,
        "message": "Basic details saved! OTP sent to your email.",
        "data": {"token": token, "email": account.email},
    }


@router.post("/auth/verify-otp")
def verify_email_otp(
    payload: VerifyOtpRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    verify_otp(db, payload.email, payload.otp)
    account = db.query(Account).filter(Account.email == payload.email).first()
    if account is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Registration session not found. Please start again.")
    token = create_registration_token(settings, token_claims(account))
    return {
        "success": True,
        "message": "Email verified! Please upload your documents.",
        "data": {"token": token, "email": account.email},
    }


@router.post("/auth/resend-otp")
def resend_otp(
    payload: EmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer=Depends(get_mailer),
):
    account = db.query(Account).filter(Account.email == payload.email).first()
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending registration found for this email.")
    if is_active(account):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered. Please login.")
    check_resend_cooldown(db, settings, account.email)
    issue_otp(db, mailer, settings, account.email)
    return {"success": True, "message": "OTP resent to your email"}


@router.post("/auth/register-complete")
def register_complete(
    payload: RegisterCompleteRequest,
    account: Account = Depends(require_registering_account),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: S3Storage = Depends(get_storage),
):
    if not account.otp_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Please verify your email OTP first.")
    if not payload.college_id_base64 or not payload.selfie_base64:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Both college ID and selfie images are required")

    owner = str(account.id)
    college_id_url = storage.upload_base64(payload.college_id_base64, "college_id", owner)
    selfie_url = storage.upload_base64(payload.selfie_base64, "selfie", owner)

    account.college_id_url = college_id_url
    account.selfie_url = selfie_url
    db.commit()
    db.refresh(account)
    logger.info("Registration completed for account %s", account.id)

    return {
        "success": True,
        "message": "Registration complete! Welcome aboard.",
        "data": {
            "token": create_access_token(settings, token_claims(account)),
            "user": build_account_payload(account),
            "collegeIdUrl": college_id_url,
            "selfieUrl": selfie_url,
        },
    }


@router.post("/auth/login")
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    account = db.query(Account).filter(Account.email == payload.email).first()
    if not account or not verify_password(payload.password, account.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    ensure_login_allowed(account)

    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "token": create_access_token(settings, token_claims(account)),
            "user": build_account_payload(account),
        },
    }


@router.get("/auth/me")
def get_me(
    account: Account = Depends(get_current_account),
    encryptor: FieldEncryptor = Depends(get_encryptor),
):
    data = build_account_payload(account)
    data["phone"] = account.phone
    data["dob"] = account.dob.isoformat() if account.dob else None
    data["aadhaarMasked"] = mask_identity_number(encryptor.decrypt(account.aadhaar_encrypted))
    return {"success": True, "data": data}

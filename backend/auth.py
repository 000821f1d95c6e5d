from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import bcrypt
import hashlib

from config import Settings
from database import get_db
from dependencies import get_settings
from models import Account

ACCESS_TOKEN = "access"
REGISTRATION_TOKEN = "registration"

security = HTTPBearer(auto_error=False)


def _prehash(password: str) -> bytes:
    try:
        pw_bytes = password.encode('utf-8')
    except AttributeError:
        pw_bytes = str(password).encode('utf-8')
    return hashlib.sha256(pw_bytes).digest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    digest = _prehash(plain_password)
    try:
        return bcrypt.checkpw(digest, hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    # Always pre-hash password with SHA-256, then bcrypt the digest
    digest = _prehash(password)
    hashed = bcrypt.hashpw(digest, bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def _encode(settings: Settings, data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(settings, data, ACCESS_TOKEN, delta)


def create_registration_token(settings: Settings, data: dict) -> str:
    delta = timedelta(minutes=settings.registration_token_expire_minutes)
    return _encode(settings, data, REGISTRATION_TOKEN, delta)


def token_claims(account: Account) -> dict:
    return {"sub": str(account.id), "email": account.email, "role": account.role.value}


def decode_token(settings: Settings, token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token invalid or expired",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _load_account(db: Session, payload: dict) -> Account:
    subject = payload.get("sub")
    try:
        account_id = int(subject)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

    account = db.query(Account).filter(Account.id == account_id).first()
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return account


def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
    settings: Settings,
    allowed_types=(ACCESS_TOKEN,),
) -> Account:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(settings, credentials.credentials)
    if payload.get("type") not in allowed_types:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )
    return _load_account(db, payload)


def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Account:
    return authenticate(credentials, db, settings)

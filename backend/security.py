from typing import Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from auth import ACCESS_TOKEN, REGISTRATION_TOKEN, authenticate, get_current_account, security
from config import Settings
from database import get_db
from dependencies import get_settings
from models import Account, AccountRole

ROLE_LABELS: Dict[AccountRole, str] = {
    AccountRole.STUDENT: "Student",
    AccountRole.ADMIN: "Admin",
    AccountRole.JUDGE: "Judge",
}


def role_label(role: AccountRole) -> str:
    return ROLE_LABELS[role]


def require_roles(*roles: AccountRole):
    allowed = set(roles)

    def _checker(account: Account = Depends(get_current_account)) -> Account:
        if account.role not in allowed:
            required = " or ".join(role.value for role in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required: {required}"
            )
        return account

    return _checker


require_student = require_roles(AccountRole.STUDENT)
require_admin = require_roles(AccountRole.ADMIN)
require_judge = require_roles(AccountRole.JUDGE)
require_admin_or_judge = require_roles(AccountRole.ADMIN, AccountRole.JUDGE)


def require_registering_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Account:
    """Accepts the short-lived registration token as well as a normal access token."""
    return authenticate(credentials, db, settings, allowed_types=(REGISTRATION_TOKEN, ACCESS_TOKEN))

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from auth import get_password_hash
from config import Settings
from database import Base
from models import Account, AccountRole, SystemConfig
from time_utils import now_tz

logger = logging.getLogger(__name__)

MIGRATION_MARKER_KEY = "migration:backend_bootstrap:v1"


def has_bootstrap_marker(db: Session) -> bool:
    return db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first() is not None


def set_bootstrap_marker(db: Session) -> None:
    marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
    value = now_tz().isoformat()
    if marker:
        marker.value = value
    else:
        db.add(SystemConfig(key=MIGRATION_MARKER_KEY, value=value))
    db.commit()


def clear_bootstrap_marker(db: Session) -> bool:
    marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
    if not marker:
        return False
    db.delete(marker)
    db.commit()
    return True


def ensure_default_admin(db: Session, settings: Settings) -> Optional[Account]:
    """Seed one admin account from DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD when both are set."""
    email = (settings.default_admin_email or "").strip().lower()
    password = settings.default_admin_password
    if not email or not password:
        return None

    existing = db.query(Account).filter(Account.email == email).first()
    if existing:
        return existing

    admin = Account(
        email=email,
        password_hash=get_password_hash(password, rounds=settings.bcrypt_rounds),
        first_name="Admin",
        role=AccountRole.ADMIN,
        otp_verified=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Seeded default admin account %s", email)
    return admin


def run_bootstrap(engine: Engine, session_factory: sessionmaker, settings: Settings) -> None:
    Base.metadata.create_all(bind=engine)
    db = session_factory()
    try:
        ensure_default_admin(db, settings)
        set_bootstrap_marker(db)
    finally:
        db.close()
    logger.info("Bootstrap completed")

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Account, AdminLog, Event, Team

logger = logging.getLogger(__name__)


def log_admin_action(db: Session, admin: Account, action: str, method: Optional[str] = None, path: Optional[str] = None, meta: Optional[dict] = None):
    db.add(AdminLog(
        admin_id=admin.id if admin else None,
        admin_email=admin.email if admin else "",
        action=action,
        method=method,
        path=path,
        meta=meta
    ))
    db.commit()
    logger.info("Admin action by %s: %s", admin.email if admin else "-", action)


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def get_event_or_404(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def get_owned_event(db: Session, event_id: int, admin: Account, verb: str = "update") -> Event:
    event = get_event_or_404(db, event_id)
    if event.created_by != admin.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You can only {verb} your own events")
    return event


def get_team_or_404(db: Session, team_id: int, event_id: Optional[int] = None) -> Team:
    query = db.query(Team).filter(Team.id == team_id)
    if event_id is not None:
        query = query.filter(Team.event_id == event_id)
    team = query.first()
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return team

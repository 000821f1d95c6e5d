from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from models import Notification


def notify_user(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str = "general",
    data: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> Notification:
    row = Notification(user_id=user_id, title=title, message=message, type=type, data=data or {})
    db.add(row)
    if commit:
        db.commit()
    return row


def notify_users(
    db: Session,
    user_ids: Iterable[int],
    title: str,
    message: str,
    type: str = "general",
    data: Optional[Dict[str, Any]] = None,
) -> int:
    count = 0
    for user_id in dict.fromkeys(user_ids):
        notify_user(db, user_id, title, message, type=type, data=data, commit=False)
        count += 1
    if count:
        db.commit()
    return count


def serialize_notification(row: Notification) -> Dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "message": row.message,
        "type": row.type,
        "data": row.data or {},
        "isRead": bool(row.is_read),
        "createdAt": row.created_at.isoformat() if row.created_at else None,
    }


def latest_matching(
    db: Session,
    user_id: int,
    types: Iterable[str],
    **match: Any,
) -> Optional[Notification]:
    """Newest notification of one of ``types`` whose data carries every ``match`` item."""
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.type.in_(list(types)))
        .order_by(Notification.id.desc())
        .all()
    )
    for row in rows:
        data = row.data or {}
        if all(data.get(key) == value for key, value in match.items()):
            return row
    return None

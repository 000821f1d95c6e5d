from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from models import Account, Notification
from notifications import serialize_notification

router = APIRouter()


@router.get("/notifications")
def list_notifications(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == account.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )
    unread = sum(1 for row in rows if not row.is_read)
    return {"success": True, "data": [serialize_notification(row) for row in rows], "unreadCount": unread}


@router.patch("/notifications/mark-all-read")
def mark_all_read(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == account.id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"success": True, "message": "All notifications marked as read", "data": {"updated": updated}}


@router.patch("/notifications/{notification_id}/read")
def mark_read(
    notification_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    row = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == account.id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    row.is_read = True
    db.commit()
    return {"success": True, "message": "Notification marked as read", "data": serialize_notification(row)}

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from dependencies import get_storage
from models import (
    Account,
    AccountRole,
    Announcement,
    Event,
    ShortlistEntry,
    Team,
    TeamMember,
    TeamStatus,
)
from notifications import notify_users
from routers.shared import active_members
from schemas import AnnouncementAudienceEnum, AnnouncementCreate, AttachmentTypeEnum
from security import require_admin
from storage import S3Storage
from team_state import ACTIVE_MEMBER_STATUSES
from utils import get_event_or_404, iso, log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter()


def _announcement_payload(row: Announcement) -> dict:
    author = row.author
    return {
        "id": row.id,
        "eventId": row.event_id,
        "title": row.title,
        "message": row.message,
        "link": row.link,
        "attachmentUrl": row.attachment_url,
        "attachmentType": row.attachment_type,
        "audience": row.audience,
        "createdBy": row.created_by,
        "createdByName": author.full_name if author else None,
        "createdAt": iso(row.created_at),
    }


def _audience_user_ids(db: Session, event: Event, audience: AnnouncementAudienceEnum) -> List[int]:
    if audience == AnnouncementAudienceEnum.SHORTLISTED:
        teams = (
            db.query(Team)
            .join(ShortlistEntry, ShortlistEntry.team_id == Team.id)
            .filter(ShortlistEntry.event_id == event.id, Team.status != TeamStatus.DISQUALIFIED)
            .all()
        )
    else:
        teams = db.query(Team).filter(Team.event_id == event.id, Team.status == TeamStatus.CONFIRMED).all()
    user_ids = []
    for team in teams:
        user_ids.extend(member.user_id for member in active_members(team))
    return list(dict.fromkeys(user_ids))


def _is_shortlisted_student(db: Session, event_id: int, user_id: int) -> bool:
    row = (
        db.query(ShortlistEntry.id)
        .join(TeamMember, TeamMember.team_id == ShortlistEntry.team_id)
        .filter(
            ShortlistEntry.event_id == event_id,
            TeamMember.user_id == user_id,
            TeamMember.status.in_(ACTIVE_MEMBER_STATUSES),
        )
        .first()
    )
    return row is not None


@router.post("/announcements", status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: AnnouncementCreate,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    event = get_event_or_404(db, payload.event_id)

    attachment_url = None
    attachment_type = None
    if payload.attachment_base64 and payload.attachment_type:
        kind = "problem_statement" if payload.attachment_type == AttachmentTypeEnum.PDF else "event_banner"
        attachment_url = storage.upload_base64(payload.attachment_base64, kind, f"announcements/{event.id}")
        attachment_type = payload.attachment_type.value

    announcement = Announcement(
        event_id=event.id,
        created_by=admin.id,
        title=payload.title,
        message=payload.message,
        link=payload.link or None,
        attachment_url=attachment_url,
        attachment_type=attachment_type,
        audience=payload.audience.value,
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)

    user_ids = _audience_user_ids(db, event, payload.audience)
    notified = notify_users(
        db,
        user_ids,
        title=f"Announcement: {announcement.title}",
        message=announcement.message,
        type="announcement",
        data={
            "eventId": event.id,
            "announcementId": announcement.id,
            "link": announcement.link,
            "attachmentUrl": attachment_url,
        },
    )
    logger.info("Announcement %s for event %s reached %s participant(s)", announcement.id, event.id, notified)

    log_admin_action(db, admin, "Create announcement", request.method, request.url.path, {"event_id": event.id, "announcement_id": announcement.id})
    if not notified:
        message = "Announcement saved but no users found for this audience yet."
    else:
        message = f"Announcement sent to {notified} participants"
    return {
        "success": True,
        "message": message,
        "data": _announcement_payload(announcement),
        "notifiedCount": notified,
    }


@router.get("/announcements/event/{event_id}")
def list_announcements(
    event_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    query = db.query(Announcement).filter(Announcement.event_id == event.id)
    if account.role == AccountRole.STUDENT and not _is_shortlisted_student(db, event.id, account.id):
        query = query.filter(Announcement.audience == AnnouncementAudienceEnum.ALL.value)
    rows = query.order_by(Announcement.created_at.desc(), Announcement.id.desc()).all()
    return {"success": True, "count": len(rows), "data": [_announcement_payload(row) for row in rows]}


@router.delete("/announcements/{announcement_id}")
def delete_announcement(
    announcement_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Announcement not found")
    if announcement.created_by != admin.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own announcements")

    db.delete(announcement)
    db.commit()

    log_admin_action(db, admin, "Delete announcement", request.method, request.url.path, {"announcement_id": announcement_id})
    return {"success": True, "message": "Announcement deleted"}

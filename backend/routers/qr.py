import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_storage
from email_tokens import generate_qr_token
from errors import ApiError
from models import Account, EntryQr, Event, EventStatus, FoodQr, ShortlistEntry, Team, TeamAttendance
from notifications import notify_users
from qr_codes import normalize_token, render_qr_png
from routers.shared import active_members
from schemas import QrScanRequest
from security import require_admin, require_student
from storage import S3Storage
from time_utils import now_tz
from utils import get_event_or_404, iso, log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_qr(storage: S3Storage, event: Event, user_id: int, kind: str):
    token = generate_qr_token(f"{kind}-{user_id}", event.id)
    image_url = storage.upload_bytes(
        render_qr_png(token, kind),
        "qr_code",
        f"events/{event.id}/{kind}",
        "image/png",
    )
    return token, image_url


def _upsert_attendance(db: Session, event: Event, team: Team, total_members: int) -> TeamAttendance:
    attendance = (
        db.query(TeamAttendance)
        .filter(TeamAttendance.event_id == event.id, TeamAttendance.team_id == team.id)
        .first()
    )
    if attendance is None:
        attendance = TeamAttendance(event_id=event.id, team_id=team.id, members_scanned=0)
        db.add(attendance)
    attendance.total_members = total_members
    return attendance


@router.post("/qr/generate/{event_id}")
def generate_qrs(
    event_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    event = get_event_or_404(db, event_id)
    if event.status != EventStatus.HACKATHON_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="QRs can only be generated after shortlisting is confirmed")

    teams = (
        db.query(Team)
        .join(ShortlistEntry, ShortlistEntry.team_id == Team.id)
        .filter(ShortlistEntry.event_id == event.id)
        .order_by(ShortlistEntry.rank)
        .all()
    )
    if not teams:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No shortlisted teams found")

    meals = event.meals or []
    entry_created = 0
    food_created = 0
    for team in teams:
        members = active_members(team)
        new_members = []
        for member in members:
            entry = (
                db.query(EntryQr)
                .filter(EntryQr.event_id == event.id, EntryQr.user_id == member.user_id)
                .first()
            )
            if entry is None:
                token, image_url = _issue_qr(storage, event, member.user_id, "entry")
                db.add(EntryQr(
                    event_id=event.id,
                    team_id=team.id,
                    user_id=member.user_id,
                    qr_token=token,
                    qr_image_url=image_url,
                ))
                entry_created += 1
                new_members.append(member.user_id)

            existing_meals = {
                row.meal_type
                for row in db.query(FoodQr)
                .filter(FoodQr.event_id == event.id, FoodQr.user_id == member.user_id)
                .all()
            }
            for meal in meals:
                if meal in existing_meals:
                    continue
                token, image_url = _issue_qr(storage, event, member.user_id, "food")
                db.add(FoodQr(
                    event_id=event.id,
                    team_id=team.id,
                    user_id=member.user_id,
                    meal_type=meal,
                    qr_token=token,
                    qr_image_url=image_url,
                ))
                food_created += 1

        _upsert_attendance(db, event, team, len(members))
        db.commit()

        notify_users(
            db,
            new_members,
            title="Your Entry QR is Ready!",
            message=f"Your entry QR code for {event.title} has been generated. Show it at the venue entrance.",
            type="qr_ready",
            data={"eventId": event.id, "teamId": team.id},
        )

    log_admin_action(
        db, admin, "Generate QR codes", request.method, request.url.path,
        {"event_id": event.id, "entry_created": entry_created, "food_created": food_created},
    )
    return {
        "success": True,
        "message": f"Generated {entry_created} entry QR(s) and {food_created} food QR(s)",
        "data": {"teams": len(teams), "entryCreated": entry_created, "foodCreated": food_created},
    }


@router.get("/qr/my-qr/{event_id}")
def get_my_qr(
    event_id: int,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    row = (
        db.query(EntryQr, Team)
        .join(Team, Team.id == EntryQr.team_id)
        .filter(EntryQr.event_id == event_id, EntryQr.user_id == user.id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry QR not found. You may not be shortlisted yet.")
    entry, team = row
    return {
        "success": True,
        "data": {
            "qrToken": entry.qr_token,
            "qrImageUrl": entry.qr_image_url,
            "teamId": team.id,
            "teamName": team.team_name,
            "isUsed": bool(entry.is_used),
            "scannedAt": iso(entry.scanned_at),
        },
    }


@router.post("/qr/scan")
def scan_entry_qr(
    payload: QrScanRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    token = normalize_token(payload.raw_token)
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="QR token is required")

    entry = db.query(EntryQr).filter(EntryQr.qr_token == token).first()
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid QR code")

    user = db.query(Account).filter(Account.id == entry.user_id).first()
    team = db.query(Team).filter(Team.id == entry.team_id).first()
    details = {
        "name": user.full_name if user else None,
        "email": user.email if user else None,
        "teamName": team.team_name if team else None,
    }
    if entry.is_used:
        raise ApiError(
            status.HTTP_409_CONFLICT,
            "QR already scanned!",
            extra={"data": {**details, "scannedAt": iso(entry.scanned_at)}},
        )

    now = now_tz()
    entry.is_used = True
    entry.scanned_at = now
    entry.scanned_by = admin.id

    attendance = (
        db.query(TeamAttendance)
        .filter(TeamAttendance.event_id == entry.event_id, TeamAttendance.team_id == entry.team_id)
        .first()
    )
    if attendance is not None:
        attendance.members_scanned += 1
        if attendance.members_scanned >= attendance.total_members and not attendance.is_reported:
            attendance.is_reported = True
            attendance.reported_at = now
    db.commit()

    team_reported = bool(attendance and attendance.is_reported)
    if team_reported:
        logger.info("Team %s fully reported for event %s", entry.team_id, entry.event_id)
    return {
        "success": True,
        "message": "Entry confirmed",
        "data": {
            **details,
            "scannedAt": iso(now),
            "membersScanned": attendance.members_scanned if attendance else None,
            "totalMembers": attendance.total_members if attendance else None,
            "teamReported": team_reported,
        },
    }


@router.get("/qr/attendance/{event_id}")
def get_attendance(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    rows = (
        db.query(TeamAttendance, Team)
        .join(Team, Team.id == TeamAttendance.team_id)
        .filter(TeamAttendance.event_id == event.id)
        .order_by(Team.team_name)
        .all()
    )
    data = [
        {
            "teamId": team.id,
            "teamName": team.team_name,
            "totalMembers": attendance.total_members,
            "membersScanned": attendance.members_scanned,
            "isReported": bool(attendance.is_reported),
            "reportedAt": iso(attendance.reported_at),
        }
        for attendance, team in rows
    ]
    summary = {
        "totalTeams": len(data),
        "reportedTeams": sum(1 for row in data if row["isReported"]),
        "totalMembers": sum(row["totalMembers"] for row in data),
        "membersScanned": sum(row["membersScanned"] for row in data),
    }
    return {"success": True, "summary": summary, "data": data}

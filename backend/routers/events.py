from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_storage
from event_state import sync_event_status
from models import Account, Event, EventMode, EventStatus
from routers.shared import build_event_payload
from schemas import EventCreate, EventModeEnum, EventStatusEnum, EventUpdate, ProblemStatementUpload
from security import require_admin
from storage import S3Storage
from time_utils import ensure_timezone
from utils import get_event_or_404, get_owned_event, log_admin_action

router = APIRouter()


@router.post("/events", status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    data = payload.model_dump(exclude={"banner_base64", "mode"})
    event = Event(
        **data,
        mode=EventMode(payload.mode.value),
        created_by=admin.id,
        status=EventStatus.DRAFT,
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    if payload.banner_base64:
        event.banner_url = storage.upload_base64(payload.banner_base64, "event_banner", f"events/{event.id}")
        db.commit()

    log_admin_action(db, admin, "Create event", request.method, request.url.path, {"event_id": event.id})
    return {"success": True, "message": "Event created successfully", "data": build_event_payload(event)}


@router.get("/events")
def list_events(
    category: Optional[str] = None,
    mode: Optional[EventModeEnum] = None,
    status_filter: Optional[EventStatusEnum] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(Event).filter(Event.status != EventStatus.DRAFT)
    if category:
        query = query.filter(Event.category == category)
    if mode:
        query = query.filter(Event.mode == EventMode(mode.value))
    events = [sync_event_status(db, event) for event in query.order_by(Event.id.desc()).all()]
    if status_filter:
        events = [event for event in events if event.status.value == status_filter.value]
    return {"success": True, "data": [build_event_payload(event) for event in events]}


@router.get("/events/admin")
def list_admin_events(
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    events = db.query(Event).filter(Event.created_by == admin.id).order_by(Event.id.desc()).all()
    events = [sync_event_status(db, event) for event in events]
    return {"success": True, "data": [build_event_payload(event) for event in events]}


@router.get("/events/{event_id}")
def get_event(event_id: int, db: Session = Depends(get_db)):
    event = sync_event_status(db, get_event_or_404(db, event_id))
    return {"success": True, "data": build_event_payload(event)}


@router.patch("/events/{event_id}")
def update_event(
    event_id: int,
    payload: EventUpdate,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_owned_event(db, event_id, admin)
    updates = payload.model_dump(exclude_unset=True)

    min_size = updates.get("min_team_size", event.min_team_size)
    max_size = updates.get("max_team_size", event.max_team_size)
    if min_size is not None and max_size is not None and min_size > max_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="minTeamSize cannot be greater than maxTeamSize")

    registration_deadline = updates.get("registration_deadline", event.registration_deadline)
    ppt_deadline = updates.get("ppt_submission_deadline", event.ppt_submission_deadline)
    if registration_deadline and ppt_deadline and ensure_timezone(ppt_deadline) < ensure_timezone(registration_deadline):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="pptSubmissionDeadline cannot be before registrationDeadline",
        )

    if "status" in updates and updates["status"] is not None:
        updates["status"] = EventStatus(updates["status"].value)
    if "mode" in updates and updates["mode"] is not None:
        updates["mode"] = EventMode(updates["mode"].value)

    for field, value in updates.items():
        setattr(event, field, value)
    db.commit()
    db.refresh(event)

    log_admin_action(db, admin, "Update event", request.method, request.url.path, {"event_id": event.id, "fields": sorted(updates)})
    return {"success": True, "message": "Event updated", "data": build_event_payload(event)}


@router.post("/events/{event_id}/problem-statement")
def upload_problem_statement(
    event_id: int,
    payload: ProblemStatementUpload,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    event = get_owned_event(db, event_id, admin)
    event.problem_statement_url = storage.upload_base64(payload.pdf_base64, "problem_statement", f"events/{event.id}")
    db.commit()

    log_admin_action(db, admin, "Upload problem statement", request.method, request.url.path, {"event_id": event.id})
    return {
        "success": True,
        "message": "Problem statement uploaded successfully",
        "data": {"problemStatementUrl": event.problem_statement_url},
    }


@router.delete("/events/{event_id}")
def delete_event(
    event_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_owned_event(db, event_id, admin, verb="delete")
    if event.status != EventStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft events can be deleted")
    db.delete(event)
    db.commit()

    log_admin_action(db, admin, "Delete event", request.method, request.url.path, {"event_id": event_id})
    return {"success": True, "message": "Event deleted"}

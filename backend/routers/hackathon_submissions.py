from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from dependencies import get_storage
from models import Account, EventStatus, HackathonSubmission, JudgeAssignment, ShortlistEntry, Team
from routers.shared import ensure_team_access
from schemas import HackathonSubmissionCreate
from security import require_admin, require_judge, require_student
from storage import S3Storage
from time_utils import now_tz
from utils import get_event_or_404, get_team_or_404, iso, log_admin_action

router = APIRouter()


def _submission_payload(submission: HackathonSubmission, team: Team = None) -> dict:
    payload = {
        "id": submission.id,
        "eventId": submission.event_id,
        "teamId": submission.team_id,
        "submittedBy": submission.submitted_by,
        "pptUrl": submission.ppt_url,
        "githubLink": submission.github_link,
        "demoVideoLink": submission.demo_video_link,
        "description": submission.description,
        "isLocked": bool(submission.is_locked),
        "submittedAt": iso(submission.submitted_at),
    }
    if team is not None:
        payload["teamName"] = team.team_name
    return payload


@router.post("/hackathon-submissions", status_code=status.HTTP_201_CREATED)
def submit_project(
    payload: HackathonSubmissionCreate,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    event = get_event_or_404(db, payload.event_id)
    if event.status != EventStatus.HACKATHON_ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Hackathon submissions not open. Current phase: {event.status.value}",
        )

    shortlisted = (
        db.query(ShortlistEntry)
        .filter(ShortlistEntry.event_id == event.id, ShortlistEntry.team_id == payload.team_id)
        .first()
    )
    if not shortlisted:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your team is not shortlisted for this event")

    team = get_team_or_404(db, payload.team_id, event_id=event.id)
    if team.leader_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the team leader can submit the project")

    submission = (
        db.query(HackathonSubmission)
        .filter(HackathonSubmission.event_id == event.id, HackathonSubmission.team_id == team.id)
        .first()
    )
    if submission and submission.is_locked:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Submission has been locked by admin")

    if not payload.ppt_base64 and not (submission and submission.ppt_url):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PPT file is required")
    if not payload.github_link:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="GitHub link is required")

    ppt_url = submission.ppt_url if submission else None
    if payload.ppt_base64:
        ppt_url = storage.upload_base64(payload.ppt_base64, "ppt", f"hackathon/{team.id}")

    updating = submission is not None
    if submission is None:
        submission = HackathonSubmission(event_id=event.id, team_id=team.id)
        db.add(submission)
    submission.submitted_by = user.id
    submission.ppt_url = ppt_url
    submission.github_link = payload.github_link
    submission.demo_video_link = payload.demo_video_link
    submission.description = payload.description
    submission.submitted_at = now_tz()
    db.commit()
    db.refresh(submission)

    message = "Submission updated successfully!" if updating else "Project submitted successfully!"
    return {"success": True, "message": message, "data": _submission_payload(submission, team)}


@router.get("/hackathon-submissions/team/{team_id}")
def get_team_project(
    team_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    ensure_team_access(team, account)
    submission = (
        db.query(HackathonSubmission)
        .filter(HackathonSubmission.team_id == team.id, HackathonSubmission.event_id == team.event_id)
        .first()
    )
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No submission found yet")
    return {"success": True, "data": _submission_payload(submission, team)}


@router.get("/hackathon-submissions/judge/{event_id}")
def get_judge_projects(
    event_id: int,
    judge: Account = Depends(require_judge),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    team_ids = [
        row.team_id
        for row in db.query(JudgeAssignment)
        .filter(JudgeAssignment.event_id == event.id, JudgeAssignment.judge_id == judge.id)
        .all()
    ]
    rows = []
    if team_ids:
        rows = (
            db.query(HackathonSubmission, Team)
            .join(Team, Team.id == HackathonSubmission.team_id)
            .filter(HackathonSubmission.event_id == event.id, HackathonSubmission.team_id.in_(team_ids))
            .order_by(Team.team_name)
            .all()
        )
    return {"success": True, "data": [_submission_payload(submission, team) for submission, team in rows]}


@router.get("/hackathon-submissions/event/{event_id}")
def get_event_projects(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    rows = (
        db.query(HackathonSubmission, Team)
        .join(Team, Team.id == HackathonSubmission.team_id)
        .filter(HackathonSubmission.event_id == event.id)
        .order_by(HackathonSubmission.submitted_at.desc())
        .all()
    )
    data = [_submission_payload(submission, team) for submission, team in rows]
    return {"success": True, "count": len(data), "data": data}


@router.patch("/hackathon-submissions/lock/{event_id}")
def lock_projects(
    event_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    locked = (
        db.query(HackathonSubmission)
        .filter(HackathonSubmission.event_id == event.id)
        .update({HackathonSubmission.is_locked: True}, synchronize_session=False)
    )
    db.commit()

    log_admin_action(db, admin, "Lock hackathon submissions", request.method, request.url.path, {"event_id": event.id, "locked": locked})
    return {"success": True, "message": "All hackathon submissions locked."}

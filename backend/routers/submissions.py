from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from dependencies import get_storage
from event_state import has_reached, sync_event_status
from models import Account, EventStatus, PptScore, Submission, Team, TeamStatus
from routers.shared import ensure_team_access
from schemas import SubmissionCreate
from security import require_admin, require_student
from storage import S3Storage
from time_utils import now_tz
from utils import get_event_or_404, get_team_or_404, iso

router = APIRouter()


def _ppt_phase_error(event_status: EventStatus) -> str:
    if event_status == EventStatus.REGISTRATION_OPEN:
        return "PPT submission has not started yet. Registration is still open."
    if event_status == EventStatus.SHORTLISTING:
        return "PPT submission deadline has passed."
    return f"PPT submission is not allowed in current event phase: {event_status.value}"


def build_submission_payload(submission: Submission, team: Team = None, score: PptScore = None) -> dict:
    payload = {
        "id": submission.id,
        "eventId": submission.event_id,
        "teamId": submission.team_id,
        "uploadedBy": submission.uploaded_by,
        "pptUrl": submission.ppt_url,
        "submittedAt": iso(submission.submitted_at),
    }
    if team is not None:
        payload["teamName"] = team.team_name
    if score is not None:
        payload["totalScore"] = score.total_score
    return payload


@router.post("/submissions", status_code=status.HTTP_201_CREATED)
def submit_ppt(
    payload: SubmissionCreate,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    event = sync_event_status(db, get_event_or_404(db, payload.event_id))
    if event.status != EventStatus.PPT_SUBMISSION:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_ppt_phase_error(event.status))

    team = db.query(Team).filter(Team.id == payload.team_id, Team.event_id == event.id).first()
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found for this event")
    if team.leader_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the team leader can submit the PPT")
    if team.status != TeamStatus.CONFIRMED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team must be confirmed before submitting")

    ppt_url = storage.upload_base64(payload.ppt_base64, "ppt", f"submissions/{team.id}")

    submission = (
        db.query(Submission)
        .filter(Submission.event_id == event.id, Submission.team_id == team.id)
        .first()
    )
    if submission is None:
        submission = Submission(event_id=event.id, team_id=team.id)
        db.add(submission)
    submission.uploaded_by = user.id
    submission.ppt_url = ppt_url
    submission.submitted_at = now_tz()
    db.commit()
    db.refresh(submission)

    return {"success": True, "message": "PPT submitted successfully!", "data": build_submission_payload(submission, team)}


@router.get("/submissions/event/{event_id}")
def get_event_submissions(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = sync_event_status(db, get_event_or_404(db, event_id))
    rows = (
        db.query(Submission, Team)
        .join(Team, Team.id == Submission.team_id)
        .filter(Submission.event_id == event.id)
        .order_by(Submission.submitted_at.desc())
        .all()
    )
    scores = {
        score.team_id: score
        for score in db.query(PptScore).filter(PptScore.event_id == event.id).all()
    }
    data = [build_submission_payload(submission, team, scores.get(team.id)) for submission, team in rows]
    return {"success": True, "count": len(data), "data": data}


@router.get("/submissions/team/{team_id}")
def get_team_submission(
    team_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    ensure_team_access(team, account)
    submission = (
        db.query(Submission)
        .filter(Submission.team_id == team.id, Submission.event_id == team.event_id)
        .first()
    )
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No submission found for this team")
    return {"success": True, "data": build_submission_payload(submission, team)}


@router.get("/submissions/event/{event_id}/problem-statement")
def get_problem_statement(
    event_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    event = sync_event_status(db, get_event_or_404(db, event_id))
    if not has_reached(event.status, EventStatus.PPT_SUBMISSION):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Problem statement is not available yet. It will be released when PPT submission starts.",
        )
    if not event.problem_statement_url:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Problem statement has not been uploaded yet")
    return {
        "success": True,
        "data": {
            "problemStatementUrl": event.problem_statement_url,
            "pptSubmissionDeadline": iso(event.ppt_submission_deadline),
        },
    }

import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import get_password_hash
from config import Settings
from database import get_db
from dependencies import get_settings
from models import (
    Account,
    AccountRole,
    Event,
    EventStatus,
    HackathonSubmission,
    JudgeAssignment,
    JudgeScore,
    ShortlistEntry,
    Team,
)
from notifications import notify_user
from routers.shared import build_account_payload, build_event_payload, build_team_payload
from schemas import JudgeAssignRequest, JudgeCreateRequest, JudgeScoreRequest, JudgeUnassignRequest
from scoring import ScoringError, average, rank_teams, score_rubric
from security import require_admin, require_admin_or_judge, require_judge
from utils import get_event_or_404, get_team_or_404, iso, log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter()


def _judge_score_payload(score: JudgeScore) -> dict:
    return {
        "teamId": score.team_id,
        "innovation": score.innovation,
        "feasibility": score.feasibility,
        "technicalDepth": score.technical_depth,
        "presentationClarity": score.presentation_clarity,
        "socialImpact": score.social_impact,
        "totalScore": score.total_score,
        "remarks": score.remarks,
        "isLocked": bool(score.is_locked),
    }


def _get_judge_or_404(db: Session, judge_id: int) -> Account:
    judge = db.query(Account).filter(Account.id == judge_id, Account.role == AccountRole.JUDGE).first()
    if not judge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Judge not found")
    return judge


@router.post("/judges/create", status_code=status.HTTP_201_CREATED)
def create_judge(
    payload: JudgeCreateRequest,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if db.query(Account).filter(Account.email == payload.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    judge = Account(
        email=payload.email,
        password_hash=get_password_hash(payload.password, rounds=settings.bcrypt_rounds),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=AccountRole.JUDGE,
        otp_verified=True,
    )
    db.add(judge)
    db.commit()
    db.refresh(judge)

    log_admin_action(db, admin, "Create judge", request.method, request.url.path, {"judge_id": judge.id})
    return {
        "success": True,
        "message": f"Judge account created for {judge.full_name}",
        "data": build_account_payload(judge),
    }


@router.get("/judges")
def list_judges(
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    judges = db.query(Account).filter(Account.role == AccountRole.JUDGE).order_by(Account.id).all()
    return {"success": True, "data": [build_account_payload(judge) for judge in judges]}


@router.get("/judges/event/{event_id}")
def get_event_judges(
    event_id: int,
    account: Account = Depends(require_admin_or_judge),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    rows = (
        db.query(JudgeAssignment, Account, Team)
        .join(Account, Account.id == JudgeAssignment.judge_id)
        .join(Team, Team.id == JudgeAssignment.team_id)
        .filter(JudgeAssignment.event_id == event.id)
        .order_by(Account.id, Team.id)
        .all()
    )
    grouped = {}
    for _, judge, team in rows:
        entry = grouped.setdefault(judge.id, {**build_account_payload(judge), "teams": []})
        entry["teams"].append({"teamId": team.id, "teamName": team.team_name})
    return {"success": True, "data": list(grouped.values())}


@router.post("/judges/assign")
def assign_teams(
    payload: JudgeAssignRequest,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, payload.event_id)
    judge = _get_judge_or_404(db, payload.judge_id)

    team_ids = list(dict.fromkeys(payload.team_ids))
    shortlisted = {
        entry.team_id
        for entry in db.query(ShortlistEntry)
        .filter(ShortlistEntry.event_id == event.id, ShortlistEntry.team_id.in_(team_ids))
        .all()
    }
    if len(shortlisted) != len(team_ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Some teams are not shortlisted for this event")

    existing = {
        row.team_id
        for row in db.query(JudgeAssignment)
        .filter(JudgeAssignment.event_id == event.id, JudgeAssignment.judge_id == judge.id)
        .all()
    }
    for team_id in team_ids:
        if team_id not in existing:
            db.add(JudgeAssignment(event_id=event.id, judge_id=judge.id, team_id=team_id, assigned_by=admin.id))
    db.commit()

    notify_user(
        db,
        judge.id,
        title="Teams Assigned",
        message=f"You have been assigned {len(team_ids)} team(s) to evaluate for {event.title}. Please login to start scoring.",
        type="judge_assigned",
        data={"eventId": event.id, "teamIds": team_ids},
    )
    log_admin_action(db, admin, "Assign judge teams", request.method, request.url.path, {"judge_id": judge.id, "team_ids": team_ids})
    return {"success": True, "message": f"{len(team_ids)} team(s) assigned to {judge.full_name}"}


@router.delete("/judges/unassign")
def unassign_team(
    payload: JudgeUnassignRequest,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignment = (
        db.query(JudgeAssignment)
        .filter(
            JudgeAssignment.event_id == payload.event_id,
            JudgeAssignment.judge_id == payload.judge_id,
            JudgeAssignment.team_id == payload.team_id,
        )
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    db.delete(assignment)
    db.commit()

    log_admin_action(db, admin, "Unassign judge team", request.method, request.url.path, payload.model_dump())
    return {"success": True, "message": "Team unassigned from judge"}


@router.get("/judges/my-events")
def get_my_events(
    judge: Account = Depends(require_judge),
    db: Session = Depends(get_db),
):
    event_ids = {row.event_id for row in db.query(JudgeAssignment).filter(JudgeAssignment.judge_id == judge.id).all()}
    events = db.query(Event).filter(Event.id.in_(event_ids)).order_by(Event.id.desc()).all() if event_ids else []
    return {"success": True, "data": [build_event_payload(event) for event in events]}


@router.get("/judges/my-teams/{event_id}")
def get_my_assigned_teams(
    event_id: int,
    judge: Account = Depends(require_judge),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    assignments = (
        db.query(JudgeAssignment)
        .filter(JudgeAssignment.event_id == event.id, JudgeAssignment.judge_id == judge.id)
        .order_by(JudgeAssignment.team_id)
        .all()
    )
    scores = {
        score.team_id: score
        for score in db.query(JudgeScore).filter(JudgeScore.event_id == event.id, JudgeScore.judge_id == judge.id).all()
    }
    submissions = {
        row.team_id: row
        for row in db.query(HackathonSubmission).filter(HackathonSubmission.event_id == event.id).all()
    }
    data = []
    for assignment in assignments:
        team = get_team_or_404(db, assignment.team_id)
        payload = build_team_payload(db, team)
        score = scores.get(team.id)
        submission = submissions.get(team.id)
        payload["myScore"] = _judge_score_payload(score) if score else None
        payload["submission"] = {
            "pptUrl": submission.ppt_url,
            "githubLink": submission.github_link,
            "demoVideoLink": submission.demo_video_link,
            "description": submission.description,
            "submittedAt": iso(submission.submitted_at),
        } if submission else None
        data.append(payload)
    return {"success": True, "data": data}


@router.post("/judges/score")
def score_team(
    payload: JudgeScoreRequest,
    judge: Account = Depends(require_judge),
    db: Session = Depends(get_db),
):
    assignment = (
        db.query(JudgeAssignment)
        .filter(
            JudgeAssignment.event_id == payload.event_id,
            JudgeAssignment.judge_id == judge.id,
            JudgeAssignment.team_id == payload.team_id,
        )
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This team is not assigned to you")

    score = (
        db.query(JudgeScore)
        .filter(
            JudgeScore.event_id == payload.event_id,
            JudgeScore.judge_id == judge.id,
            JudgeScore.team_id == payload.team_id,
        )
        .first()
    )
    if score and score.is_locked:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Score has been locked by admin and cannot be changed")

    try:
        total = score_rubric(payload.components(), payload.weights())
    except ScoringError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if score is None:
        score = JudgeScore(event_id=payload.event_id, judge_id=judge.id, team_id=payload.team_id)
        db.add(score)
    weights = payload.weights()
    for name, value in payload.components().items():
        setattr(score, name, value)
        setattr(score, f"{name}_weight", weights[name])
    score.total_score = total
    score.remarks = payload.remarks
    db.commit()
    db.refresh(score)

    return {"success": True, "message": "Score submitted successfully", "data": _judge_score_payload(score)}


@router.get("/judges/scores/{event_id}")
def get_event_scores(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    rows = (
        db.query(JudgeScore, Account, Team)
        .join(Account, Account.id == JudgeScore.judge_id)
        .join(Team, Team.id == JudgeScore.team_id)
        .filter(JudgeScore.event_id == event.id)
        .all()
    )
    per_team = defaultdict(list)
    teams = {}
    for score, judge, team in rows:
        teams[team.id] = team
        per_team[team.id].append({"judge": judge.full_name, **_judge_score_payload(score)})

    averages = {team_id: average(entry["totalScore"] for entry in entries) for team_id, entries in per_team.items()}
    data = [
        {
            "rank": ranked.rank,
            "teamId": ranked.team_id,
            "teamName": teams[ranked.team_id].team_name,
            "avgTotal": ranked.total_score,
            "judgeScores": per_team[ranked.team_id],
        }
        for ranked in rank_teams(averages.items())
    ]
    return {"success": True, "data": data}


@router.patch("/judges/lock/{event_id}")
def lock_scores(
    event_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    db.query(JudgeScore).filter(JudgeScore.event_id == event.id).update(
        {JudgeScore.is_locked: True}, synchronize_session=False
    )
    event.status = EventStatus.COMPLETED
    db.commit()

    log_admin_action(db, admin, "Lock judge scores", request.method, request.url.path, {"event_id": event.id})
    return {"success": True, "message": "All scores locked. Event marked as completed."}

import csv
import io
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from dependencies import get_mailer
from email_templates import build_shortlist_email
from emailer import send_quietly
from event_state import sync_event_status
from models import (
    Account,
    EntryQr,
    Event,
    EventStatus,
    FoodQr,
    PptScore,
    ShortlistEntry,
    Submission,
    Team,
    TeamStatus,
)
from notifications import latest_matching, notify_users
from routers.shared import active_members
from schemas import ExportFormatEnum, PptScoreRequest
from scoring import ScoringError, rank_teams, score_rubric
from security import require_admin
from utils import get_event_or_404, get_team_or_404, iso, log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter()

CONFIRMABLE_STATUSES = {EventStatus.SHORTLISTING, EventStatus.HACKATHON_ACTIVE}
OUTCOME_TYPES = ("shortlisted", "not_shortlisted")


def _score_payload(score: PptScore) -> Dict:
    return {
        "innovation": score.innovation,
        "feasibility": score.feasibility,
        "technicalDepth": score.technical_depth,
        "presentationClarity": score.presentation_clarity,
        "socialImpact": score.social_impact,
        "weights": {
            "innovation": score.innovation_weight,
            "feasibility": score.feasibility_weight,
            "technicalDepth": score.technical_depth_weight,
            "presentationClarity": score.presentation_clarity_weight,
            "socialImpact": score.social_impact_weight,
        },
        "totalScore": score.total_score,
        "remarks": score.remarks,
    }


def _eligible_scores(db: Session, event: Event) -> List:
    return (
        db.query(PptScore, Team)
        .join(Team, Team.id == PptScore.team_id)
        .filter(PptScore.event_id == event.id, Team.status != TeamStatus.DISQUALIFIED)
        .all()
    )


def _leaderboard(db: Session, event: Event) -> List[Dict]:
    rows = _eligible_scores(db, event)
    by_team = {team.id: (score, team) for score, team in rows}
    shortlisted = {
        entry.team_id
        for entry in db.query(ShortlistEntry).filter(ShortlistEntry.event_id == event.id).all()
    }
    board = []
    for ranked in rank_teams((team_id, score.total_score) for team_id, (score, _) in by_team.items()):
        score, team = by_team[ranked.team_id]
        board.append({
            "rank": ranked.rank,
            "teamId": team.id,
            "teamName": team.team_name,
            "isShortlisted": team.id in shortlisted,
            **_score_payload(score),
        })
    return board


@router.post("/shortlist/score")
def score_ppt(
    payload: PptScoreRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        total = score_rubric(payload.components(), payload.weights())
    except ScoringError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    event = sync_event_status(db, get_event_or_404(db, payload.event_id))
    if event.status != EventStatus.SHORTLISTING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PPT scoring is only allowed during the shortlisting phase")
    team = get_team_or_404(db, payload.team_id, event_id=event.id)
    if team.status == TeamStatus.DISQUALIFIED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is disqualified")

    submission = (
        db.query(Submission)
        .filter(Submission.event_id == event.id, Submission.team_id == team.id)
        .first()
    )
    score = db.query(PptScore).filter(PptScore.event_id == event.id, PptScore.team_id == team.id).first()
    if score is None:
        score = PptScore(event_id=event.id, team_id=team.id)
        db.add(score)

    components = payload.components()
    weights = payload.weights()
    for name, value in components.items():
        setattr(score, name, value)
        setattr(score, f"{name}_weight", weights[name])
    score.total_score = total
    score.remarks = payload.remarks
    score.scored_by = admin.id
    score.submission_id = submission.id if submission else payload.submission_id
    db.commit()
    db.refresh(score)

    return {
        "success": True,
        "message": "Score saved",
        "data": {"teamId": team.id, "teamName": team.team_name, **_score_payload(score)},
    }


@router.get("/shortlist/leaderboard/{event_id}")
def get_leaderboard(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = sync_event_status(db, get_event_or_404(db, event_id))
    return {
        "success": True,
        "data": _leaderboard(db, event),
        "teamsToShortlist": event.teams_to_shortlist,
    }


@router.post("/shortlist/confirm/{event_id}")
def confirm_shortlist(
    event_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    event = sync_event_status(db, get_event_or_404(db, event_id))
    if event.status not in CONFIRMABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shortlist can only be confirmed during the shortlisting phase")

    qr_exists = (
        db.query(EntryQr.id).filter(EntryQr.event_id == event.id).first()
        or db.query(FoodQr.id).filter(FoodQr.event_id == event.id).first()
    )
    if qr_exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Shortlist cannot be changed after QR codes are generated")

    rows = _eligible_scores(db, event)
    if not rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No scored teams to shortlist")

    teams = {team.id: team for _, team in rows}
    ranked = rank_teams([(team.id, score.total_score) for score, team in rows], limit=event.teams_to_shortlist)

    db.query(ShortlistEntry).filter(ShortlistEntry.event_id == event.id).delete(synchronize_session=False)
    for entry in ranked:
        db.add(ShortlistEntry(event_id=event.id, team_id=entry.team_id, rank=entry.rank, total_score=entry.total_score))
    event.status = EventStatus.HACKATHON_ACTIVE
    db.commit()

    ranks = {entry.team_id: entry.rank for entry in ranked}
    for team_id, team in teams.items():
        # re-runs only notify teams whose outcome changed
        previous = latest_matching(db, team.leader_id, OUTCOME_TYPES, eventId=event.id, teamId=team.id)
        if previous is not None and (previous.data or {}).get("rank") == ranks.get(team_id):
            continue
        members = active_members(team)
        if team_id in ranks:
            notify_users(
                db,
                [member.user_id for member in members],
                title="Congratulations! You're Shortlisted",
                message=f'Your team "{team.team_name}" has been shortlisted for {event.title} (rank {ranks[team_id]}).',
                type="shortlisted",
                data={"eventId": event.id, "teamId": team.id, "rank": ranks[team_id]},
            )
            for member in members:
                subject, html, text = build_shortlist_email(
                    name=member.user.first_name,
                    team_name=team.team_name,
                    event_name=event.title,
                    rank=ranks[team_id],
                )
                send_quietly(mailer, member.user.email, subject, html, text)
        else:
            notify_users(
                db,
                [member.user_id for member in members],
                title="Shortlisting Results",
                message=f'Thank you for participating in {event.title}. Your team "{team.team_name}" was not shortlisted this time.',
                type="not_shortlisted",
                data={"eventId": event.id, "teamId": team.id},
            )

    log_admin_action(db, admin, "Confirm shortlist", request.method, request.url.path, {"event_id": event.id, "teams": len(ranked)})
    data = [
        {"rank": entry.rank, "teamId": entry.team_id, "teamName": teams[entry.team_id].team_name, "totalScore": entry.total_score}
        for entry in ranked
    ]
    return {"success": True, "message": f"{len(ranked)} team(s) shortlisted", "data": data}


@router.get("/shortlist/check/{event_id}/{team_id}")
def check_shortlisted(
    event_id: int,
    team_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    entry = (
        db.query(ShortlistEntry)
        .filter(ShortlistEntry.event_id == event_id, ShortlistEntry.team_id == team_id)
        .first()
    )
    return {
        "success": True,
        "data": {
            "isShortlisted": entry is not None,
            "rank": entry.rank if entry else None,
            "totalScore": entry.total_score if entry else None,
        },
    }


@router.get("/shortlist/export/{event_id}")
def export_leaderboard(
    event_id: int,
    format: ExportFormatEnum = ExportFormatEnum.CSV,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    board = _leaderboard(db, event)

    headers = ["Rank", "Team ID", "Team Name", "Innovation", "Feasibility", "Technical Depth",
               "Presentation Clarity", "Social Impact", "Total Score", "Shortlisted"]
    rows = [[e["rank"], e["teamId"], e["teamName"], e["innovation"], e["feasibility"], e["technicalDepth"],
             e["presentationClarity"], e["socialImpact"], e["totalScore"], "Yes" if e["isShortlisted"] else "No"]
            for e in board]
    filename = f"event_{event.id}_leaderboard"

    if format == ExportFormatEnum.XLSX:
        wb = Workbook()
        ws = wb.active
        ws.title = "Leaderboard"
        ws.append(headers)
        for row in rows:
            ws.append(row)

        output = io.BytesIO()
        wb.save(output)
        output.seek(0)

        return StreamingResponse(
            output,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"}
        )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}.csv"}
    )


@router.get("/shortlist/{event_id}")
def get_shortlisted_teams(
    event_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    rows = (
        db.query(ShortlistEntry, Team)
        .join(Team, Team.id == ShortlistEntry.team_id)
        .filter(ShortlistEntry.event_id == event.id)
        .order_by(ShortlistEntry.rank)
        .all()
    )
    data = [
        {
            "rank": entry.rank,
            "teamId": team.id,
            "teamName": team.team_name,
            "totalScore": entry.total_score,
            "shortlistedAt": iso(entry.shortlisted_at),
        }
        for entry, team in rows
    ]
    return {"success": True, "data": data}

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import get_current_account
from database import get_db
from dependencies import get_mailer
from email_templates import build_team_invite_email
from emailer import send_quietly
from event_state import sync_event_status
from models import Account, AccountRole, Event, EventStatus, MemberStatus, Team, TeamMember, TeamStatus
from notifications import notify_user, notify_users
from routers.shared import active_members, build_team_payload, ensure_team_access
from schemas import TeamCreate
from security import require_admin, require_student
from team_state import can_respond, derive_team_status, effective_min_size, team_size_error
from time_utils import now_tz
from utils import get_event_or_404, get_team_or_404, log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter()


def _membership_in_event(db: Session, event_id: int, user_id: int) -> Optional[TeamMember]:
    return (
        db.query(TeamMember)
        .join(Team, Team.id == TeamMember.team_id)
        .filter(
            Team.event_id == event_id,
            TeamMember.user_id == user_id,
            TeamMember.status != MemberStatus.DECLINED,
        )
        .first()
    )


def _resolve_invitee(db: Session, event_id: int, email: str) -> Account:
    user = db.query(Account).filter(Account.email == email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"No registered user found with email: {email}")
    if user.role != AccountRole.STUDENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{email} is not a student")
    if not user.otp_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{email} has not verified their account yet")
    if _membership_in_event(db, event_id, user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{email} is already in a team for this event")
    return user


def refresh_team_status(db: Session, team: Team, event: Event) -> TeamStatus:
    """Re-derive a team's status from its member rows; disqualified teams are left alone."""
    if team.status == TeamStatus.DISQUALIFIED:
        return team.status

    db.expire(team, ["members"])
    min_size = effective_min_size(event.min_team_size, event.allow_individual)
    derived = derive_team_status([member.status for member in team.members], min_size)
    previous = team.status
    team.status = derived
    db.commit()

    if derived == TeamStatus.CONFIRMED and previous != TeamStatus.CONFIRMED:
        notify_users(
            db,
            [member.user_id for member in active_members(team)],
            title="Team Confirmed!",
            message=f'Your team "{team.team_name}" has been confirmed. All members have accepted the invitation!',
            type="team_confirmed",
            data={"teamId": team.id, "eventId": team.event_id},
        )
    return derived


@router.post("/teams", status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    leader: Account = Depends(require_student),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    event = sync_event_status(db, get_event_or_404(db, payload.event_id))
    if event.status != EventStatus.REGISTRATION_OPEN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event registration is not open")

    if _membership_in_event(db, event.id, leader.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already in a team for this event")

    emails = payload.member_emails
    size_error = team_size_error(1 + len(emails), event.min_team_size, event.max_team_size, event.allow_individual)
    if size_error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=size_error)

    if len(set(emails)) != len(emails):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duplicate emails in member list")
    if leader.email in emails:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot invite yourself")

    invitees = [_resolve_invitee(db, event.id, email) for email in emails]

    team_name = payload.team_name.strip()
    taken = db.query(Team).filter(Team.event_id == event.id, Team.team_name == team_name).first()
    if taken:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team name already taken for this event")

    now = now_tz()
    team = Team(event_id=event.id, team_name=team_name, leader_id=leader.id, status=TeamStatus.PENDING)
    db.add(team)
    db.flush()
    db.add(TeamMember(team_id=team.id, user_id=leader.id, status=MemberStatus.LEADER, joined_at=now))
    for invitee in invitees:
        db.add(TeamMember(team_id=team.id, user_id=invitee.id, status=MemberStatus.PENDING))
    db.commit()
    db.refresh(team)

    for invitee in invitees:
        notify_user(
            db,
            invitee.id,
            title="Team Invitation",
            message=f'{leader.full_name} invited you to join "{team.team_name}" for {event.title}.',
            type="team_invite",
            data={"teamId": team.id, "eventId": event.id},
            commit=False,
        )
    db.commit()

    for invitee in invitees:
        subject, html, text = build_team_invite_email(
            invitee_name=invitee.first_name,
            leader_name=leader.full_name,
            team_name=team.team_name,
            event_name=event.title,
        )
        send_quietly(mailer, invitee.email, subject, html, text)

    refresh_team_status(db, team, event)
    message = "Team created! Invitations sent to members." if invitees else "Team created and confirmed!"
    return {"success": True, "message": message, "data": build_team_payload(db, team)}


def _own_invitation(db: Session, team: Team, user: Account) -> TeamMember:
    member = (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team.id, TeamMember.user_id == user.id)
        .first()
    )
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    return member


@router.post("/teams/{team_id}/accept")
def accept_invitation(
    team_id: int,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    member = _own_invitation(db, team, user)
    if not can_respond(member.status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invitation already {member.status.value}")

    now = now_tz()
    member.status = MemberStatus.ACCEPTED
    member.joined_at = now
    member.responded_at = now
    db.commit()

    event = get_event_or_404(db, team.event_id)
    team_status = refresh_team_status(db, team, event)
    return {
        "success": True,
        "message": "Invitation accepted",
        "data": {"teamId": team.id, "teamStatus": team_status.value},
    }


@router.post("/teams/{team_id}/decline")
def decline_invitation(
    team_id: int,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    member = _own_invitation(db, team, user)
    if member.status == MemberStatus.LEADER:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team leader cannot decline. Delete the team instead.")
    if not can_respond(member.status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invitation already {member.status.value}")

    member.status = MemberStatus.DECLINED
    member.responded_at = now_tz()
    db.commit()

    notify_user(
        db,
        team.leader_id,
        title="Invitation Declined",
        message=f'{user.full_name} ({user.email}) has declined the invitation to "{team.team_name}".',
        data={"teamId": team.id},
    )

    event = get_event_or_404(db, team.event_id)
    team_status = refresh_team_status(db, team, event)
    return {
        "success": True,
        "message": "Invitation declined",
        "data": {"teamId": team.id, "teamStatus": team_status.value},
    }


@router.get("/teams/my-teams")
def get_my_teams(
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(TeamMember)
        .filter(TeamMember.user_id == user.id, TeamMember.status != MemberStatus.DECLINED)
        .order_by(TeamMember.id.desc())
        .all()
    )
    data = []
    for row in rows:
        payload = build_team_payload(db, row.team)
        payload["myStatus"] = row.status.value
        data.append(payload)
    return {"success": True, "data": data}


@router.get("/teams/event/{event_id}")
def get_event_teams(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    teams = db.query(Team).filter(Team.event_id == event.id).order_by(Team.id).all()
    return {"success": True, "data": [build_team_payload(db, team) for team in teams]}


@router.get("/teams/{team_id}")
def get_team(
    team_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    ensure_team_access(team, account)
    return {"success": True, "data": build_team_payload(db, team)}


@router.patch("/teams/{team_id}/disqualify")
def disqualify_team(
    team_id: int,
    request: Request,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    if team.status == TeamStatus.DISQUALIFIED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is already disqualified")
    team.status = TeamStatus.DISQUALIFIED
    db.commit()

    notify_users(
        db,
        [member.user_id for member in active_members(team)],
        title="Team Disqualified",
        message=f'Your team "{team.team_name}" has been disqualified by the organisers.',
        data={"teamId": team.id, "eventId": team.event_id},
    )
    log_admin_action(db, admin, "Disqualify team", request.method, request.url.path, {"team_id": team.id})
    return {"success": True, "message": "Team disqualified", "data": build_team_payload(db, team)}


@router.delete("/teams/{team_id}")
def delete_team(
    team_id: int,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    if team.leader_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the team leader can delete the team")
    if team.status == TeamStatus.CONFIRMED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete a confirmed team")

    others = [
        member.user_id for member in team.members
        if member.user_id != user.id and member.status != MemberStatus.DECLINED
    ]
    team_name = team.team_name
    db.delete(team)
    db.commit()

    notify_users(
        db,
        others,
        title="Team Deleted",
        message=f'The team "{team_name}" has been deleted by its leader.',
    )
    logger.info("Team %s deleted by leader %s", team_id, user.id)
    return {"success": True, "message": "Team deleted"}

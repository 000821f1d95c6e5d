from typing import Dict, List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Account, AccountRole, Event, MemberStatus, ShortlistEntry, Team, TeamMember
from security import role_label
from team_state import ACTIVE_MEMBER_STATUSES
from utils import iso


def build_account_payload(account: Account) -> Dict:
    return {
        "id": account.id,
        "email": account.email,
        "firstName": account.first_name,
        "lastName": account.last_name,
        "role": account.role.value,
        "roleLabel": role_label(account.role),
        "college": account.college,
        "otpVerified": bool(account.otp_verified),
        "isVerified": account.is_verified,
    }


def build_event_payload(event: Event) -> Dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "category": event.category,
        "committeeName": event.committee_name,
        "createdBy": event.created_by,
        "startDate": event.start_date.isoformat() if event.start_date else None,
        "endDate": event.end_date.isoformat() if event.end_date else None,
        "registrationDeadline": iso(event.registration_deadline),
        "pptSubmissionDeadline": iso(event.ppt_submission_deadline),
        "minTeamSize": event.min_team_size,
        "maxTeamSize": event.max_team_size,
        "allowIndividual": bool(event.allow_individual),
        "mode": event.mode.value if event.mode else None,
        "venue": event.venue,
        "firstPrize": event.first_prize,
        "secondPrize": event.second_prize,
        "thirdPrize": event.third_prize,
        "entryFee": event.entry_fee,
        "isFree": bool(event.is_free),
        "rules": event.rules or [],
        "meals": event.meals or [],
        "teamsToShortlist": event.teams_to_shortlist,
        "bannerUrl": event.banner_url,
        "hasProblemStatement": bool(event.problem_statement_url),
        "status": event.status.value,
    }


def active_members(team: Team) -> List[TeamMember]:
    return [member for member in team.members if member.status in ACTIVE_MEMBER_STATUSES]


def build_team_payload(db: Session, team: Team) -> Dict:
    event = db.query(Event).filter(Event.id == team.event_id).first()
    shortlisted = (
        db.query(ShortlistEntry)
        .filter(ShortlistEntry.event_id == team.event_id, ShortlistEntry.team_id == team.id)
        .first()
    )
    members = []
    for member in team.members:
        user = member.user
        members.append({
            "userId": member.user_id,
            "firstName": user.first_name if user else None,
            "lastName": user.last_name if user else None,
            "email": user.email if user else None,
            "college": user.college if user else None,
            "status": member.status.value,
            "isLeader": member.status == MemberStatus.LEADER,
            "joinedAt": iso(member.joined_at),
        })
    return {
        "id": team.id,
        "teamName": team.team_name,
        "eventId": team.event_id,
        "eventTitle": event.title if event else None,
        "eventStatus": event.status.value if event else None,
        "leaderId": team.leader_id,
        "status": team.status.value,
        "isShortlisted": shortlisted is not None,
        "shortlistRank": shortlisted.rank if shortlisted else None,
        "members": members,
        "createdAt": iso(team.created_at),
    }


def is_team_member(team: Team, user_id: int) -> bool:
    return any(
        member.user_id == user_id and member.status != MemberStatus.DECLINED
        for member in team.members
    )


def ensure_team_access(team: Team, account: Account) -> None:
    """Students only see teams they belong to; admins and judges see every team."""
    if account.role != AccountRole.STUDENT:
        return
    if not is_team_member(team, account.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this team")

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from models import Event, EventStatus, MemberStatus, Team, TeamMember, TeamStatus
from notifications import notify_users
from time_utils import ensure_timezone, now_tz

logger = logging.getLogger(__name__)

# statuses an admin sets by hand; date sync never moves them
MANUAL_STATUSES = {
    EventStatus.DRAFT,
    EventStatus.REGISTRATION_CLOSED,
    EventStatus.HACKATHON_ACTIVE,
    EventStatus.JUDGING,
    EventStatus.COMPLETED,
}

PHASE_ORDER = [
    EventStatus.DRAFT,
    EventStatus.REGISTRATION_OPEN,
    EventStatus.REGISTRATION_CLOSED,
    EventStatus.PPT_SUBMISSION,
    EventStatus.SHORTLISTING,
    EventStatus.HACKATHON_ACTIVE,
    EventStatus.JUDGING,
    EventStatus.COMPLETED,
]


def _passed(deadline: Optional[datetime], now: datetime) -> bool:
    if deadline is None:
        return False
    return now > ensure_timezone(deadline)


def next_status(event, now: Optional[datetime] = None) -> EventStatus:
    """Return the status ``event`` should be in at ``now`` based on its deadlines."""
    now = now or now_tz()
    current = event.status
    if current in MANUAL_STATUSES:
        return current

    if current == EventStatus.REGISTRATION_OPEN and _passed(event.registration_deadline, now):
        current = EventStatus.PPT_SUBMISSION
    if current == EventStatus.PPT_SUBMISSION and _passed(event.ppt_submission_deadline, now):
        current = EventStatus.SHORTLISTING
    return current


def has_reached(status: EventStatus, phase: EventStatus) -> bool:
    return PHASE_ORDER.index(status) >= PHASE_ORDER.index(phase)


def sync_event_status(db: Session, event: Event, now: Optional[datetime] = None) -> Event:
    target = next_status(event, now)
    if target == event.status:
        return event

    previous = event.status
    event.status = target
    db.commit()
    logger.info("Event %s moved from %s to %s", event.id, previous.value, target.value)

    if previous == EventStatus.REGISTRATION_OPEN:
        _notify_ppt_open(db, event)
    return event


def _notify_ppt_open(db: Session, event: Event) -> None:
    rows = (
        db.query(TeamMember.user_id)
        .join(Team, Team.id == TeamMember.team_id)
        .filter(
            Team.event_id == event.id,
            Team.status == TeamStatus.CONFIRMED,
            TeamMember.status.in_([MemberStatus.LEADER, MemberStatus.ACCEPTED]),
        )
        .all()
    )
    notify_users(
        db,
        [row.user_id for row in rows],
        title="PPT Submission Open!",
        message=f'PPT submission has started for "{event.title}". Upload your presentation before the deadline.',
        type="ppt_open",
        data={"eventId": event.id},
    )

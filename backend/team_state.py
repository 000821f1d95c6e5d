from typing import Iterable, Optional, Union

from models import MemberStatus, TeamStatus

ACTIVE_MEMBER_STATUSES = (MemberStatus.LEADER, MemberStatus.ACCEPTED)


def _as_member_status(value: Union[MemberStatus, str]) -> MemberStatus:
    if isinstance(value, MemberStatus):
        return value
    return MemberStatus(value)


def derive_team_status(member_statuses: Iterable[Union[MemberStatus, str]], min_size: int) -> TeamStatus:
    """Confirmed once every non-declined member has joined and the team is big enough."""
    statuses = [_as_member_status(s) for s in member_statuses]
    live = [s for s in statuses if s != MemberStatus.DECLINED]
    if not live:
        return TeamStatus.PENDING
    if any(s not in ACTIVE_MEMBER_STATUSES for s in live):
        return TeamStatus.PENDING
    if len(live) < min_size:
        return TeamStatus.PENDING
    return TeamStatus.CONFIRMED


def effective_min_size(min_team_size: int, allow_individual: bool) -> int:
    if allow_individual:
        return 1
    return max(min_team_size or 1, 1)


def team_size_error(size: int, min_team_size: int, max_team_size: int, allow_individual: bool) -> Optional[str]:
    # a solo team skips the minimum when the event allows individuals
    solo_allowed = allow_individual and size == 1
    if not solo_allowed and size < min_team_size:
        return f"Minimum team size is {min_team_size}"
    if size > max_team_size:
        return f"Maximum team size is {max_team_size}"
    return None


def can_respond(status: Union[MemberStatus, str]) -> bool:
    return _as_member_status(status) == MemberStatus.PENDING

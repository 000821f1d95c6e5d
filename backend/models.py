from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Date, Enum as SQLEnum, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class AccountRole(enum.Enum):
    STUDENT = "student"
    ADMIN = "admin"
    JUDGE = "judge"


class EventStatus(enum.Enum):
    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    PPT_SUBMISSION = "ppt_submission"
    SHORTLISTING = "shortlisting"
    HACKATHON_ACTIVE = "hackathon_active"
    JUDGING = "judging"
    COMPLETED = "completed"


class EventMode(enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class TeamStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISQUALIFIED = "disqualified"


class MemberStatus(enum.Enum):
    LEADER = "leader"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=True)
    dob = Column(Date, nullable=True)
    phone = Column(String(20), nullable=True)
    aadhaar_encrypted = Column(Text, nullable=True)
    college = Column(String(255), nullable=True)
    role = Column(SQLEnum(AccountRole, values_callable=_enum_values), default=AccountRole.STUDENT, nullable=False)
    otp_verified = Column(Boolean, default=False, nullable=False)
    college_id_url = Column(String(1000), nullable=True)
    selfie_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def documents_uploaded(self) -> bool:
        return bool(self.college_id_url and self.selfie_url)

    @property
    def is_verified(self) -> bool:
        return bool(self.otp_verified and self.documents_uploaded)


class OtpChallenge(Base):
    __tablename__ = "otp_challenges"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    code_hash = Column(String(64), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, nullable=False)


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(60), nullable=True)
    committee_name = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    registration_deadline = Column(DateTime(timezone=True), nullable=True)
    ppt_submission_deadline = Column(DateTime(timezone=True), nullable=True)
    min_team_size = Column(Integer, default=1, nullable=False)
    max_team_size = Column(Integer, default=4, nullable=False)
    allow_individual = Column(Boolean, default=True, nullable=False)
    mode = Column(SQLEnum(EventMode, values_callable=_enum_values), default=EventMode.OFFLINE, nullable=False)
    venue = Column(String(255), nullable=True)
    first_prize = Column(Float, default=0)
    second_prize = Column(Float, default=0)
    third_prize = Column(Float, default=0)
    entry_fee = Column(Float, default=0)
    is_free = Column(Boolean, default=True)
    rules = Column(JSON, nullable=True)
    meals = Column(JSON, nullable=True)  # ["Breakfast", "Lunch", ...]
    teams_to_shortlist = Column(Integer, default=5, nullable=False)
    problem_statement_url = Column(String(1000), nullable=True)
    banner_url = Column(String(1000), nullable=True)
    status = Column(SQLEnum(EventStatus, values_callable=_enum_values), default=EventStatus.DRAFT, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = (UniqueConstraint("event_id", "team_name", name="uq_teams_event_name"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_name = Column(String(255), nullable=False)
    leader_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    status = Column(SQLEnum(TeamStatus, values_callable=_enum_values), default=TeamStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan", order_by="TeamMember.id")


class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),)

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    status = Column(SQLEnum(MemberStatus, values_callable=_enum_values), default=MemberStatus.PENDING, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    team = relationship("Team", back_populates="members")
    user = relationship("Account")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(40), nullable=False, default="general")
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_submissions_event_team"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    ppt_url = Column(String(1000), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class RubricColumnsMixin:
    innovation = Column(Float, default=0, nullable=False)
    feasibility = Column(Float, default=0, nullable=False)
    technical_depth = Column(Float, default=0, nullable=False)
    presentation_clarity = Column(Float, default=0, nullable=False)
    social_impact = Column(Float, default=0, nullable=False)
    innovation_weight = Column(Integer, default=20, nullable=False)
    feasibility_weight = Column(Integer, default=20, nullable=False)
    technical_depth_weight = Column(Integer, default=20, nullable=False)
    presentation_clarity_weight = Column(Integer, default=20, nullable=False)
    social_impact_weight = Column(Integer, default=20, nullable=False)
    total_score = Column(Float, default=0, nullable=False)
    remarks = Column(Text, nullable=True)


class PptScore(RubricColumnsMixin, Base):
    __tablename__ = "ppt_scores"
    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_ppt_scores_event_team"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="SET NULL"), nullable=True)
    scored_by = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    scored_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class ShortlistEntry(Base):
    __tablename__ = "shortlisted_teams"
    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_shortlisted_event_team"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    rank = Column(Integer, nullable=False)
    total_score = Column(Float, nullable=False)
    shortlisted_at = Column(DateTime(timezone=True), server_default=func.now())


class JudgeAssignment(Base):
    __tablename__ = "judge_assignments"
    __table_args__ = (UniqueConstraint("event_id", "judge_id", "team_id", name="uq_judge_assignment"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    judge_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class JudgeScore(RubricColumnsMixin, Base):
    __tablename__ = "judge_scores"
    __table_args__ = (UniqueConstraint("event_id", "judge_id", "team_id", name="uq_judge_score"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    judge_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class EntryQr(Base):
    __tablename__ = "entry_qrs"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_entry_qrs_event_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    qr_token = Column(String(128), unique=True, index=True, nullable=False)
    qr_image_url = Column(String(1000), nullable=True)
    is_used = Column(Boolean, default=False, nullable=False)
    scanned_at = Column(DateTime(timezone=True), nullable=True)
    scanned_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class FoodQr(Base):
    __tablename__ = "food_qrs"
    __table_args__ = (UniqueConstraint("event_id", "user_id", "meal_type", name="uq_food_qrs_event_user_meal"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    meal_type = Column(String(60), nullable=False)
    qr_token = Column(String(128), unique=True, index=True, nullable=False)
    qr_image_url = Column(String(1000), nullable=True)
    is_used = Column(Boolean, default=False, nullable=False)
    scanned_at = Column(DateTime(timezone=True), nullable=True)
    scanned_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TeamAttendance(Base):
    __tablename__ = "team_attendance"
    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_team_attendance_event_team"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    total_members = Column(Integer, default=0, nullable=False)
    members_scanned = Column(Integer, default=0, nullable=False)
    is_reported = Column(Boolean, default=False, nullable=False)
    reported_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class HackathonSubmission(Base):
    __tablename__ = "hackathon_submissions"
    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_hackathon_submissions_event_team"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    ppt_url = Column(String(1000), nullable=False)
    github_link = Column(String(500), nullable=False)
    demo_video_link = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    is_locked = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(1000), nullable=True)
    attachment_url = Column(String(1000), nullable=True)
    attachment_type = Column(String(10), nullable=True)  # image | pdf
    audience = Column(String(20), default="all", nullable=False)  # all | shortlisted
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("Account")


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, nullable=True)
    admin_email = Column(String(255), nullable=False)
    action = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(500), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

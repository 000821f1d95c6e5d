from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from enum import Enum
from datetime import datetime, date, timezone
import re


PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
AADHAAR_RE = re.compile(r"^[0-9]{12}$")


class EventStatusEnum(str, Enum):
    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    PPT_SUBMISSION = "ppt_submission"
    SHORTLISTING = "shortlisting"
    HACKATHON_ACTIVE = "hackathon_active"
    JUDGING = "judging"
    COMPLETED = "completed"


class EventModeEnum(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ExportFormatEnum(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"


class AnnouncementAudienceEnum(str, Enum):
    ALL = "all"
    SHORTLISTED = "shortlisted"


class AttachmentTypeEnum(str, Enum):
    IMAGE = "image"
    PDF = "pdf"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


class RegisterBasicRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    dob: date
    phone: str
    aadhaar_number: str
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value):
        cleaned = re.sub(r"[\s-]", "", value or "")
        if not PHONE_RE.match(cleaned):
            raise ValueError("Invalid phone number")
        return cleaned

    @field_validator("aadhaar_number")
    @classmethod
    def validate_aadhaar(cls, value):
        cleaned = re.sub(r"[\s-]", "", value or "")
        if not AADHAAR_RE.match(cleaned):
            raise ValueError("Aadhaar number must be 12 digits")
        return cleaned


class EmailRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


class VerifyOtpRequest(EmailRequest):
    otp: str = Field(..., min_length=1, max_length=12)


class RegisterCompleteRequest(CamelModel):
    college_id_base64: Optional[str] = None
    selfie_base64: Optional[str] = None


class LoginRequest(EmailRequest):
    password: str = Field(..., min_length=1)


class JudgeCreateRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _clean_meals(meals: Optional[List[str]]) -> Optional[List[str]]:
    if meals is None:
        return None
    cleaned: List[str] = []
    for meal in meals:
        name = (meal or "").strip()
        if name and name not in cleaned:
            cleaned.append(name)
    return cleaned


class EventCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=60)
    committee_name: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    registration_deadline: datetime
    ppt_submission_deadline: Optional[datetime] = None
    min_team_size: int = Field(1, ge=1)
    max_team_size: int = Field(4, ge=1)
    allow_individual: bool = True
    mode: EventModeEnum = EventModeEnum.OFFLINE
    venue: Optional[str] = None
    first_prize: float = 0
    second_prize: float = 0
    third_prize: float = 0
    entry_fee: float = 0
    is_free: bool = True
    rules: Optional[List[str]] = None
    meals: List[str] = Field(default_factory=list)
    teams_to_shortlist: int = Field(5, ge=1)
    banner_base64: Optional[str] = None

    @field_validator("meals")
    @classmethod
    def clean_meals(cls, value):
        return _clean_meals(value)

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.min_team_size > self.max_team_size:
            raise ValueError("minTeamSize cannot be greater than maxTeamSize")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate cannot be before startDate")
        if self.ppt_submission_deadline and _aware(self.ppt_submission_deadline) < _aware(self.registration_deadline):
            raise ValueError("pptSubmissionDeadline cannot be before registrationDeadline")
        return self


# columns that are NOT NULL on the events table
EVENT_REQUIRED_FIELDS = (
    "title",
    "min_team_size",
    "max_team_size",
    "allow_individual",
    "mode",
    "teams_to_shortlist",
    "status",
)


class EventUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=60)
    committee_name: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    registration_deadline: Optional[datetime] = None
    ppt_submission_deadline: Optional[datetime] = None
    min_team_size: Optional[int] = Field(None, ge=1)
    max_team_size: Optional[int] = Field(None, ge=1)
    allow_individual: Optional[bool] = None
    mode: Optional[EventModeEnum] = None
    venue: Optional[str] = None
    first_prize: Optional[float] = None
    second_prize: Optional[float] = None
    third_prize: Optional[float] = None
    entry_fee: Optional[float] = None
    is_free: Optional[bool] = None
    rules: Optional[List[str]] = None
    meals: Optional[List[str]] = None
    teams_to_shortlist: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatusEnum] = None

    @field_validator("meals")
    @classmethod
    def clean_meals(cls, value):
        return _clean_meals(value)

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in EVENT_REQUIRED_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class ProblemStatementUpload(CamelModel):
    pdf_base64: str


class TeamCreate(CamelModel):
    event_id: int
    team_name: str = Field(..., min_length=1, max_length=255)
    member_emails: List[EmailStr] = Field(default_factory=list)

    @field_validator("member_emails")
    @classmethod
    def normalize_emails(cls, value):
        return [_normalize_email(email) for email in value or []]


class SubmissionCreate(CamelModel):
    event_id: int
    team_id: int
    ppt_base64: str


class RubricScoreRequest(CamelModel):
    event_id: int
    team_id: int
    innovation: float = 0
    feasibility: float = 0
    technical_depth: float = 0
    presentation_clarity: float = 0
    social_impact: float = 0
    innovation_weight: int = 20
    feasibility_weight: int = 20
    technical_depth_weight: int = 20
    presentation_clarity_weight: int = 20
    social_impact_weight: int = 20
    remarks: Optional[str] = None

    def components(self) -> dict:
        return {
            "innovation": self.innovation,
            "feasibility": self.feasibility,
            "technical_depth": self.technical_depth,
            "presentation_clarity": self.presentation_clarity,
            "social_impact": self.social_impact,
        }

    def weights(self) -> dict:
        return {
            "innovation": self.innovation_weight,
            "feasibility": self.feasibility_weight,
            "technical_depth": self.technical_depth_weight,
            "presentation_clarity": self.presentation_clarity_weight,
            "social_impact": self.social_impact_weight,
        }


class PptScoreRequest(RubricScoreRequest):
    submission_id: Optional[int] = None


class JudgeScoreRequest(RubricScoreRequest):
    pass


class JudgeAssignRequest(CamelModel):
    event_id: int
    judge_id: int
    team_ids: List[int] = Field(..., min_length=1)


class JudgeUnassignRequest(CamelModel):
    event_id: int
    judge_id: int
    team_id: int


class QrScanRequest(CamelModel):
    qr_token: Optional[str] = None
    token: Optional[str] = None

    @property
    def raw_token(self) -> Optional[str]:
        return self.qr_token or self.token


class HackathonSubmissionCreate(CamelModel):
    event_id: int
    team_id: int
    ppt_base64: Optional[str] = None
    github_link: Optional[str] = Field(None, max_length=500)
    demo_video_link: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None


class AnnouncementCreate(CamelModel):
    event_id: int
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    audience: AnnouncementAudienceEnum = AnnouncementAudienceEnum.ALL
    link: Optional[str] = Field(None, max_length=1000)
    attachment_base64: Optional[str] = None
    attachment_type: Optional[AttachmentTypeEnum] = None

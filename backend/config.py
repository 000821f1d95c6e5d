import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from time_utils import DEFAULT_TIMEZONE, load_timezone

ROOT_DIR = Path(__file__).parent

WEAK_SECRETS = {
    'default_secret_key',
    'changeme',
    'change_me',
    'secret',
    'jwt_secret',
    'password',
    'admin123',
}


def _bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid {name}: {raw}")


def validate_jwt_secret(secret: Optional[str]) -> str:
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY is required and must be set in environment')
    if len(secret) < 32 or secret.strip().lower() in WEAK_SECRETS:
        raise RuntimeError('JWT_SECRET_KEY is too weak; use a random secret with at least 32 characters')
    return secret


@dataclass
class SMTPConfig:
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    use_ssl: bool
    sender: str


def load_smtp(prefix: str) -> Optional[SMTPConfig]:
    host = os.environ.get(f"{prefix}_HOST")
    port_raw = os.environ.get(f"{prefix}_PORT")
    sender = os.environ.get(f"{prefix}_FROM")
    if not host or not port_raw or not sender:
        return None

    try:
        port = int(port_raw)
    except ValueError:
        raise RuntimeError(f"Invalid {prefix}_PORT: {port_raw}")

    return SMTPConfig(
        host=host,
        port=port,
        user=os.environ.get(f"{prefix}_USER"),
        password=os.environ.get(f"{prefix}_PASS"),
        use_tls=_bool_env(os.environ.get(f"{prefix}_TLS"), default=True),
        use_ssl=_bool_env(os.environ.get(f"{prefix}_SSL"), default=False),
        sender=sender,
    )


@dataclass
class S3Config:
    region: Optional[str] = None
    bucket: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    key_prefix: str = "hackathon"

    @property
    def is_configured(self) -> bool:
        return bool(self.region and self.bucket and self.access_key and self.secret_key)


@dataclass
class Settings:
    database_url: str
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    registration_token_expire_minutes: int = 60
    otp_ttl_seconds: int = 10 * 60
    otp_resend_cooldown_seconds: int = 30
    bcrypt_rounds: int = 12
    encryption_key: Optional[str] = None
    max_upload_bytes: int = 12 * 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    smtp_primary: Optional[SMTPConfig] = None
    smtp_secondary: Optional[SMTPConfig] = None
    s3: S3Config = field(default_factory=S3Config)
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        validate_jwt_secret(self.jwt_secret_key)
        if not self.database_url:
            raise RuntimeError('DATABASE_URL is required and must be set in environment')
        if self.otp_ttl_seconds <= 0:
            raise RuntimeError('OTP_TTL_SECONDS must be positive')
        load_timezone(self.timezone)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(ROOT_DIR / '.env')
        return cls(
            database_url=os.environ.get('DATABASE_URL', ''),
            jwt_secret_key=os.environ.get('JWT_SECRET_KEY', ''),
            jwt_algorithm=os.environ.get('JWT_ALGORITHM', 'HS256'),
            access_token_expire_minutes=_int_env('ACCESS_TOKEN_EXPIRE_MINUTES', 24 * 60),
            registration_token_expire_minutes=_int_env('REGISTRATION_TOKEN_EXPIRE_MINUTES', 60),
            otp_ttl_seconds=_int_env('OTP_TTL_SECONDS', 10 * 60),
            otp_resend_cooldown_seconds=_int_env('OTP_RESEND_COOLDOWN_SECONDS', 30),
            bcrypt_rounds=_int_env('BCRYPT_ROUNDS', 12),
            encryption_key=os.environ.get('ENCRYPTION_KEY') or None,
            max_upload_bytes=_int_env('MAX_UPLOAD_BYTES', 12 * 1024 * 1024),
            cors_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
            smtp_primary=load_smtp("SMTP_PRIMARY"),
            smtp_secondary=load_smtp("SMTP_SECONDARY"),
            s3=S3Config(
                region=os.environ.get("AWS_REGION"),
                bucket=os.environ.get("S3_BUCKET_NAME"),
                access_key=os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID"),
                secret_key=os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
                key_prefix=os.environ.get("S3_KEY_PREFIX", "hackathon"),
            ),
            default_admin_email=os.environ.get('DEFAULT_ADMIN_EMAIL') or None,
            default_admin_password=os.environ.get('DEFAULT_ADMIN_PASSWORD') or None,
            timezone=os.environ.get("APP_TIMEZONE") or DEFAULT_TIMEZONE,
        )

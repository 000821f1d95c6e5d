import base64
import binascii
import logging
import uuid
from typing import Dict, Optional, Tuple

import boto3
from botocore.config import Config
from fastapi import HTTPException, status

from config import S3Config

logger = logging.getLogger(__name__)

IMAGE_TYPES = {"image/png": ".png", "image/jpeg": ".jpg", "image/webp": ".webp"}
PDF_TYPES = {"application/pdf": ".pdf"}
PRESENTATION_TYPES = {
    **PDF_TYPES,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/vnd.ms-powerpoint": ".ppt",
}

# kind -> (folder, allowed content types)
UPLOAD_KINDS: Dict[str, Tuple[str, Dict[str, str]]] = {
    "college_id": ("college-ids", IMAGE_TYPES),
    "selfie": ("selfies", IMAGE_TYPES),
    "event_banner": ("event-banners", IMAGE_TYPES),
    "problem_statement": ("problem-statements", PDF_TYPES),
    "ppt": ("submissions", PRESENTATION_TYPES),
    "qr_code": ("qr-codes", {"image/png": ".png"}),
}


def _sniff_content_type(data: bytes) -> Optional[str]:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith(b"%PDF"):
        return "application/pdf"
    if data.startswith(b"PK\x03\x04"):
        return "application/vnd.openxmlformats-officedocument.presentationml.presentation"
    if data.startswith(b"\xd0\xcf\x11\xe0"):
        return "application/vnd.ms-powerpoint"
    return None


def decode_base64_payload(value: Optional[str], max_bytes: int) -> Tuple[bytes, Optional[str]]:
    """Decode a raw or ``data:`` URL base64 string; returns the bytes and any declared content type."""
    if not value or not value.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File data is required")

    declared = None
    payload = value.strip()
    if payload.startswith("data:") and "," in payload:
        header, payload = payload.split(",", 1)
        declared = header[len("data:"):].split(";", 1)[0].strip().lower() or None

    payload = "".join(payload.split())
    payload += "=" * (-len(payload) % 4)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 file data")

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File data is required")
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File size exceeds {limit_mb}MB limit")
    return data, declared


def resolve_content_type(data: bytes, declared: Optional[str], kind: str) -> str:
    _, allowed = UPLOAD_KINDS[kind]
    sniffed = _sniff_content_type(data)
    for candidate in (sniffed, declared):
        if candidate == "image/jpg":
            candidate = "image/jpeg"
        if candidate in allowed:
            return candidate
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")


class S3Storage:
    def __init__(self, config: S3Config, max_bytes: int):
        self.config = config
        self.max_bytes = max_bytes
        self.client = None
        if config.is_configured:
            s3_config = Config(signature_version="s3v4", s3={"addressing_style": "virtual"})
            self.client = boto3.client(
                "s3",
                region_name=config.region,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                endpoint_url=f"https://s3.{config.region}.amazonaws.com",
                config=s3_config,
            )

    def _build_url(self, key: str) -> str:
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com/{key}"

    def _put_object(self, key: str, data: bytes, content_type: str) -> str:
        if not self.client:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="S3 not configured")
        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except Exception as exc:
            logger.error("S3 upload failed for %s: %s", key, exc)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload failed") from exc
        return self._build_url(key)

    def upload_bytes(self, data: bytes, kind: str, owner: str, content_type: str) -> str:
        folder, allowed = UPLOAD_KINDS[kind]
        extension = allowed.get(content_type, "")
        prefix = self.config.key_prefix.rstrip("/")
        key = f"{prefix}/{folder}/{owner}/{kind}_{uuid.uuid4().hex}{extension}"
        return self._put_object(key, data, content_type)

    def upload_base64(self, value: Optional[str], kind: str, owner: str) -> str:
        data, declared = decode_base64_payload(value, self.max_bytes)
        content_type = resolve_content_type(data, declared, kind)
        return self.upload_bytes(data, kind, owner, content_type)

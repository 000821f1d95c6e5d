import hashlib
import hmac
import secrets

OTP_DIGITS = 6


def generate_otp_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str) -> bool:
    return hmac.compare_digest(hash_token(token), token_hash or "")


def generate_qr_token(seed: str, event_id: int) -> str:
    return hash_token(f"{seed}-{event_id}-{secrets.token_hex(16)}")

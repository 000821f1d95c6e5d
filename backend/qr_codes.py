import io
import json
import re
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_H

MIN_PREFIX_LENGTH = 32
TOKEN_LENGTH = 64
_NON_HEX = re.compile(r"[^0-9a-fA-F]")
_HEX = re.compile(r"^[0-9a-f]+$")


def render_qr_png(token: str, kind: str = "entry") -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=10, border=2)
    qr.add_data(json.dumps({"token": token, "type": kind}))
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


def normalize_token(raw: Optional[str]) -> Optional[str]:
    """Trim scanner noise: keep the hex characters when there are any, lower-cased."""
    if raw is None or not isinstance(raw, str):
        return None
    token = raw.strip()
    hex_only = _NON_HEX.sub("", token)
    if hex_only:
        token = hex_only
    return token.lower() or None


def is_resolvable_prefix(token: str) -> bool:
    return bool(_HEX.match(token)) and MIN_PREFIX_LENGTH <= len(token) < TOKEN_LENGTH

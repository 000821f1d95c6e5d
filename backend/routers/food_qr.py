import logging
from collections import OrderedDict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from errors import ApiError
from models import Account, FoodQr, Team
from qr_codes import is_resolvable_prefix, normalize_token
from schemas import QrScanRequest
from security import require_admin, require_student
from time_utils import now_tz
from utils import get_event_or_404, iso

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_food_qr(db: Session, raw_token) -> FoodQr:
    """Find a food QR by its full token, or by a prefix long enough to match exactly one row."""
    token = normalize_token(raw_token)
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="QR token is required")

    food = db.query(FoodQr).filter(FoodQr.qr_token == token).first()
    if food:
        return food

    if is_resolvable_prefix(token):
        matches = db.query(FoodQr).filter(FoodQr.qr_token.like(f"{token}%")).limit(2).all()
        if len(matches) == 1:
            return matches[0]

    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid QR code")


def _food_payload(db: Session, food: FoodQr) -> dict:
    user = db.query(Account).filter(Account.id == food.user_id).first()
    team = db.query(Team).filter(Team.id == food.team_id).first()
    return {
        "mealType": food.meal_type,
        "name": user.full_name if user else None,
        "email": user.email if user else None,
        "teamName": team.team_name if team else None,
        "isUsed": bool(food.is_used),
        "scannedAt": iso(food.scanned_at),
    }


@router.get("/food-qr/my-meals/{event_id}")
def get_my_meals(
    event_id: int,
    user: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(FoodQr)
        .filter(FoodQr.event_id == event_id, FoodQr.user_id == user.id)
        .order_by(FoodQr.id)
        .all()
    )
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No food QRs found. Entry QRs may not be generated yet.")
    data = [
        {
            "mealType": row.meal_type,
            "qrToken": row.qr_token,
            "qrImageUrl": row.qr_image_url,
            "isUsed": bool(row.is_used),
            "scannedAt": iso(row.scanned_at),
        }
        for row in rows
    ]
    return {"success": True, "data": data}


@router.post("/food-qr/lookup")
def lookup_food_qr(
    payload: QrScanRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    food = resolve_food_qr(db, payload.raw_token)
    return {"success": True, "data": _food_payload(db, food)}


@router.post("/food-qr/scan")
def scan_food_qr(
    payload: QrScanRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    food = resolve_food_qr(db, payload.raw_token)
    if food.is_used:
        raise ApiError(
            status.HTTP_409_CONFLICT,
            f"{food.meal_type} QR already used!",
            extra={"data": _food_payload(db, food)},
        )

    food.is_used = True
    food.scanned_at = now_tz()
    food.scanned_by = admin.id
    db.commit()

    return {
        "success": True,
        "message": f"{food.meal_type} served",
        "data": _food_payload(db, food),
    }


@router.get("/food-qr/report/{event_id}")
def get_food_report(
    event_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    summary = OrderedDict((meal, {"total": 0, "consumed": 0, "pending": 0}) for meal in (event.meals or []))
    for food in db.query(FoodQr).filter(FoodQr.event_id == event.id).all():
        counts = summary.setdefault(food.meal_type, {"total": 0, "consumed": 0, "pending": 0})
        counts["total"] += 1
        if food.is_used:
            counts["consumed"] += 1
        else:
            counts["pending"] += 1
    return {"success": True, "data": summary}

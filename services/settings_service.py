import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from config import settings as app_settings
from models.platform_settings import PlatformSettings
from services.financial import to_decimal
from utils.cache import cache, SETTINGS_KEY
from utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# API field name -> column
_EDITABLE_FIELDS = {
    "commissionRate": "commission_rate_pct",
    "minFare": "min_fare",
    "perKmShort": "per_km_short",
    "perKmMedium": "per_km_medium",
    "perKmLong": "per_km_long",
    "shortDistanceMax": "short_distance_max_km",
    "mediumDistanceMax": "medium_distance_max_km",
}


def get_platform_settings(db: Session) -> PlatformSettings:
    """Return the singleton settings row, creating it from config defaults on first use."""
    row = db.query(PlatformSettings).order_by(PlatformSettings.settings_id).first()
    if row:
        return row

    row = PlatformSettings(
        commission_rate_pct=to_decimal(app_settings.COMMISSION_RATE_PERCENT),
        min_fare=to_decimal(app_settings.PRICE_MIN_FARE),
        per_km_short=to_decimal(app_settings.PRICE_PER_KM_SHORT),
        per_km_medium=to_decimal(app_settings.PRICE_PER_KM_MEDIUM),
        per_km_long=to_decimal(app_settings.PRICE_PER_KM_LONG),
        short_distance_max_km=to_decimal(app_settings.PRICE_SHORT_MAX_KM),
        medium_distance_max_km=to_decimal(app_settings.PRICE_MEDIUM_MAX_KM),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Created default platform settings")
    return row


def settings_to_dict(row: PlatformSettings) -> dict:
    return {
        api_name: float(getattr(row, column))
        for api_name, column in _EDITABLE_FIELDS.items()
    }


def get_commission_rate(db: Session) -> Decimal:
    """Commission percentage in force right now."""
    cached = cache.get(SETTINGS_KEY)
    if cached is not None and "commissionRate" in cached:
        return to_decimal(cached["commissionRate"])

    row = get_platform_settings(db)
    cache.set(SETTINGS_KEY, settings_to_dict(row), ttl=60)
    return to_decimal(row.commission_rate_pct)


def update_platform_settings(db: Session, admin_id: int, changes: dict) -> PlatformSettings:
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    row = get_platform_settings(db)
    for api_name, value in changes.items():
        if value is None:
            continue
        try:
            amount = to_decimal(value)
        except ArithmeticError:
            db.rollback()
            raise ValidationError(f"{api_name} must be a number")
        if amount < 0:
            db.rollback()
            raise ValidationError(f"{api_name} cannot be negative")
        if api_name == "commissionRate" and amount > 100:
            db.rollback()
            raise ValidationError("commissionRate must be between 0 and 100")
        setattr(row, _EDITABLE_FIELDS[api_name], amount)

    if row.medium_distance_max_km < row.short_distance_max_km:
        db.rollback()
        raise ValidationError("mediumDistanceMax must not be below shortDistanceMax")

    row.updated_by = admin_id
    db.commit()
    db.refresh(row)
    cache.delete(SETTINGS_KEY)
    logger.info(f"Platform settings updated by admin {admin_id}: {sorted(changes)}")
    return row


def pricing_table(db: Session) -> dict:
    row = get_platform_settings(db)
    return {
        "min_fare": to_decimal(row.min_fare),
        "per_km_short": to_decimal(row.per_km_short),
        "per_km_medium": to_decimal(row.per_km_medium),
        "per_km_long": to_decimal(row.per_km_long),
        "short_max_km": to_decimal(row.short_distance_max_km),
        "medium_max_km": to_decimal(row.medium_distance_max_km),
    }

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional
from database import get_db
from models.user import User
from services.settings_service import get_platform_settings, settings_to_dict, update_platform_settings
from utils.dependencies import get_current_active_user, require_admin

router = APIRouter(prefix="/settings", tags=["Settings"])


class UpdateSettingsRequest(BaseModel):
    commissionRate: Optional[float] = Field(None, ge=0, le=100)
    minFare: Optional[float] = Field(None, ge=0)
    perKmShort: Optional[float] = Field(None, ge=0)
    perKmMedium: Optional[float] = Field(None, ge=0)
    perKmLong: Optional[float] = Field(None, ge=0)
    shortDistanceMax: Optional[float] = Field(None, ge=0)
    mediumDistanceMax: Optional[float] = Field(None, ge=0)


@router.get("")
def get_settings(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Commission rate and pricing table currently in force"""
    return {
        "success": True,
        "message": "Settings retrieved successfully",
        "settings": settings_to_dict(get_platform_settings(db)),
    }


@router.patch("")
def update_settings(
    request: UpdateSettingsRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    changes = request.model_dump(exclude_none=True)
    row = update_platform_settings(db, current_user.user_id, changes)
    return {
        "success": True,
        "message": "Settings updated successfully",
        "settings": settings_to_dict(row),
    }

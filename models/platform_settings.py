from sqlalchemy import Column, Integer, DECIMAL, DateTime, ForeignKey
from sqlalchemy.sql import func
from database import Base


class PlatformSettings(Base):
    """Admin-editable singleton row (commission rate, pricing table)."""

    __tablename__ = "platform_settings"

    settings_id = Column(Integer, primary_key=True, autoincrement=True)
    commission_rate_pct = Column(DECIMAL(5, 2), nullable=False)

    min_fare = Column(DECIMAL(12, 2), nullable=False)
    per_km_short = Column(DECIMAL(12, 2), nullable=False)
    per_km_medium = Column(DECIMAL(12, 2), nullable=False)
    per_km_long = Column(DECIMAL(12, 2), nullable=False)
    short_distance_max_km = Column(DECIMAL(6, 2), nullable=False)
    medium_distance_max_km = Column(DECIMAL(6, 2), nullable=False)

    updated_by = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

"""
models/location.py - Rider presence feed
Latest known coordinates of each rider, read by customers during active orders
"""

from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class RiderLocation(Base):
    __tablename__ = "rider_locations"

    location_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    rider_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, unique=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    online = Column(Boolean, default=True, index=True)
    last_seen = Column(DateTime, nullable=False)

    rider = relationship("User", back_populates="location")

    def to_dict(self) -> dict:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
            "online": bool(self.online),
        }

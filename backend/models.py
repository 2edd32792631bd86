# booking-backend/models.py

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    primary_color = Column(String, nullable=True)  # Brand color for the booking page

    users = relationship("User", back_populates="company")


class User(Base):
    """A host whose calendar is exposed on the public booking page."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True, index=True)
    timezone = Column(String, nullable=True)  # IANA name, e.g. "America/New_York"
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)

    google_calendar_connected = Column(Boolean, default=False, nullable=False)
    google_credentials = Column(Text, nullable=True)  # Credentials.to_json() payload
    google_calendar_email = Column(String, nullable=True)

    company = relationship("Company", back_populates="users")
    availability = relationship("Availability", back_populates="user", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")


class Availability(Base):
    """Recurring weekly window. Several rows per weekday are allowed (split shifts)."""

    __tablename__ = "availability"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(String, nullable=False)  # "HH:MM"
    end_time = Column(String, nullable=False)  # "HH:MM"
    duration_minutes = Column(Integer, default=30, nullable=False)
    buffer_minutes = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="availability")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=False)
    client_phone = Column(String, nullable=True)
    start_time = Column(DateTime, index=True, nullable=False)  # Store naive UTC datetime
    end_time = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String, default="CONFIRMED", nullable=False)
    google_event_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None), nullable=False)

    user = relationship("User", back_populates="bookings")

"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class RoleEnum(str, Enum):
    STUDENT = "STUDENT"
    STAFF = "STAFF"
    ADMIN = "ADMIN"
    PLUMBER = "PLUMBER"
    IT_STAFF = "IT_STAFF"
    CLEANER = "CLEANER"
    WARDEN = "WARDEN"
    DRIVER = "DRIVER"


class IssueStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class IssuePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NetworkIssueType(str, Enum):
    CONNECTIVITY = "CONNECTIVITY"
    SPEED = "SPEED"
    AUTHENTICATION = "AUTHENTICATION"
    OTHER = "OTHER"


class CleaningStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CleaningType(str, Enum):
    REGULAR = "REGULAR"
    DEEP = "DEEP"
    SPECIAL = "SPECIAL"


class MealType(str, Enum):
    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"
    SPECIAL = "SPECIAL"


class DietaryType(str, Enum):
    VEG = "VEG"
    NON_VEG = "NON_VEG"
    JAIN = "JAIN"
    SPECIAL = "SPECIAL"


class VehicleType(str, Enum):
    BUS = "Bus"
    VAN = "Van"
    CAR = "Car"
    MINIBUS = "Minibus"


class VehicleStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"


class Weekday(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), default=RoleEnum.STUDENT, index=True)
    room_number: Mapped[Optional[str]] = mapped_column(String(20), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WaterIssue(Base):
    __tablename__ = "water_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    plumber_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True, default=None)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    location: Mapped[str] = mapped_column(String(255))
    priority: Mapped[IssuePriority] = mapped_column(SqlEnum(IssuePriority), default=IssuePriority.MEDIUM)
    status: Mapped[IssueStatus] = mapped_column(SqlEnum(IssueStatus), default=IssueStatus.PENDING, index=True)
    images: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reporter: Mapped[User] = relationship(foreign_keys=[reporter_id])
    plumber: Mapped[Optional[User]] = relationship(foreign_keys=[plumber_id])


class NetworkIssue(Base):
    __tablename__ = "network_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True, default=None)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    issue_type: Mapped[NetworkIssueType] = mapped_column(SqlEnum(NetworkIssueType))
    priority: Mapped[IssuePriority] = mapped_column(SqlEnum(IssuePriority), default=IssuePriority.MEDIUM)
    status: Mapped[IssueStatus] = mapped_column(SqlEnum(IssueStatus), default=IssueStatus.PENDING, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), default=None)
    mac_address: Mapped[Optional[str]] = mapped_column(String(17), default=None)
    speed_test: Mapped[Optional[dict]] = mapped_column(JSON, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reporter: Mapped[User] = relationship(foreign_keys=[reporter_id])
    assigned_to: Mapped[Optional[User]] = relationship(foreign_keys=[assigned_to_id])
    comments: Mapped[List["NetworkComment"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="NetworkComment.created_at",
    )


class NetworkComment(Base):
    __tablename__ = "network_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("network_issues.id", ondelete="CASCADE"), index=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    issue: Mapped[NetworkIssue] = relationship(back_populates="comments")
    author: Mapped[User] = relationship()


class CleaningRequest(Base):
    __tablename__ = "cleaning_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    cleaner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True, default=None)
    room: Mapped[str] = mapped_column(String(20))
    building: Mapped[str] = mapped_column(String(100), index=True)
    cleaning_type: Mapped[CleaningType] = mapped_column(SqlEnum(CleaningType))
    scheduled_date: Mapped[date] = mapped_column(Date, index=True)
    time_slot: Mapped[str] = mapped_column(String(50))
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, default=None)
    status: Mapped[CleaningStatus] = mapped_column(SqlEnum(CleaningStatus), default=CleaningStatus.PENDING, index=True)
    rating: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    feedback: Mapped[Optional[str]] = mapped_column(Text, default=None)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped[User] = relationship(foreign_keys=[student_id])
    cleaner: Mapped[Optional[User]] = relationship(foreign_keys=[cleaner_id])


class MessMenu(Base):
    __tablename__ = "mess_menus"
    __table_args__ = (UniqueConstraint("date", "meal_type", name="uq_mess_menus_date_meal_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    meal_type: Mapped[MealType] = mapped_column(SqlEnum(MealType))
    serving_time: Mapped[Optional[str]] = mapped_column(String(5), default=None)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_ends_at: Mapped[Optional[date]] = mapped_column(Date, default=None)
    base_menu_id: Mapped[Optional[int]] = mapped_column(ForeignKey("mess_menus.id"), index=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items: Mapped[List["MenuItem"]] = relationship(
        back_populates="menu",
        cascade="all, delete-orphan",
        order_by="MenuItem.position",
    )
    feedback: Mapped[List["MealFeedback"]] = relationship(back_populates="menu")


class MenuItem(Base):
    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    menu_id: Mapped[int] = mapped_column(ForeignKey("mess_menus.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(100))
    dietary_type: Mapped[DietaryType] = mapped_column(SqlEnum(DietaryType), default=DietaryType.VEG)

    menu: Mapped[MessMenu] = relationship(back_populates="items")


class MealFeedback(Base):
    __tablename__ = "meal_feedback"
    __table_args__ = (UniqueConstraint("user_id", "menu_id", name="uq_meal_feedback_user_menu"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    menu_id: Mapped[int] = mapped_column(ForeignKey("mess_menus.id"), index=True)
    rating: Mapped[int] = mapped_column(Integer)
    comment: Mapped[Optional[str]] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    user: Mapped[User] = relationship()
    menu: Mapped[MessMenu] = relationship(back_populates="feedback")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[VehicleType] = mapped_column(SqlEnum(VehicleType))
    number: Mapped[str] = mapped_column(String(30), unique=True)
    capacity: Mapped[int] = mapped_column(Integer)
    status: Mapped[VehicleStatus] = mapped_column(SqlEnum(VehicleStatus), default=VehicleStatus.AVAILABLE, index=True)
    driver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    driver: Mapped[Optional[User]] = relationship()
    schedules: Mapped[List["Schedule"]] = relationship(back_populates="vehicle")


class Route(Base):
    __tablename__ = "routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text, default="")
    start_point: Mapped[str] = mapped_column(String(255))
    end_point: Mapped[str] = mapped_column(String(255))
    stops: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    schedules: Mapped[List["Schedule"]] = relationship(back_populates="route")


class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("route_id", "day", "start_time", "vehicle_id", name="uq_schedules_route_day_time_vehicle"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("routes.id"), index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), index=True)
    day: Mapped[Weekday] = mapped_column(SqlEnum(Weekday))
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    max_capacity: Mapped[int] = mapped_column(Integer)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    route: Mapped[Route] = relationship(back_populates="schedules")
    vehicle: Mapped[Vehicle] = relationship(back_populates="schedules")
    bookings: Mapped[List["TransportBooking"]] = relationship(back_populates="schedule")


class TransportBooking(Base):
    __tablename__ = "transport_bookings"
    __table_args__ = (
        UniqueConstraint("user_id", "schedule_id", "booking_date", name="uq_bookings_user_schedule_date"),
        Index("ix_bookings_schedule_date_status", "schedule_id", "booking_date", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), index=True)
    booking_date: Mapped[date] = mapped_column(Date, index=True)
    status: Mapped[BookingStatus] = mapped_column(SqlEnum(BookingStatus), default=BookingStatus.CONFIRMED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped[User] = relationship()
    schedule: Mapped[Schedule] = relationship(back_populates="bookings")
    vehicle: Mapped[Vehicle] = relationship()

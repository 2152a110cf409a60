"""Pydantic schemas shared across the services."""
from __future__ import annotations

import datetime as dt
import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, HttpUrl, IPvAnyAddress, field_validator, model_validator

from .models import (
    BookingStatus,
    CleaningStatus,
    CleaningType,
    DietaryType,
    IssuePriority,
    IssueStatus,
    MealType,
    NetworkIssueType,
    RoleEnum,
    VehicleStatus,
    VehicleType,
    Weekday,
)
from .recurrence import Frequency

SERVING_TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"
CLOCK_TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"
MAC_ADDRESS_PATTERN = r"^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$"


# ---------------------------------------------------------------- users/auth


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    room_number: Optional[str] = None

    model_config = {"from_attributes": True}


class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    room_number: Optional[str] = Field(None, max_length=20)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.lower()


class RegisterRequest(UserBase):
    password: str = Field(..., min_length=8)
    role: RoleEnum = RoleEnum.STUDENT


class AdminUserCreate(UserBase):
    password: str = Field(..., min_length=8)
    role: RoleEnum = RoleEnum.STUDENT


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[RoleEnum] = None
    room_number: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class UserRead(UserBase):
    id: int
    role: RoleEnum
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class PermissionsRead(BaseModel):
    role: RoleEnum
    permissions: List[str]
    pages: List[str]
    landing_page: str


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserPage(BaseModel):
    data: List[UserRead]
    pagination: Pagination


# ---------------------------------------------------------------- water


class WaterIssueCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10)
    location: str = Field(..., min_length=1)
    priority: IssuePriority = IssuePriority.MEDIUM
    images: List[HttpUrl] = Field(default_factory=list)


class WaterIssueStatusUpdate(BaseModel):
    status: IssueStatus
    plumber_id: Optional[int] = Field(None, gt=0)


class WaterIssueRead(BaseModel):
    id: int
    title: str
    description: str
    location: str
    priority: IssuePriority
    status: IssueStatus
    images: List[str]
    reporter_id: int
    plumber_id: Optional[int]
    reporter: UserSummary
    plumber: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------- network


class NetworkIssueCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10)
    issue_type: NetworkIssueType
    priority: IssuePriority = IssuePriority.MEDIUM
    ip_address: Optional[IPvAnyAddress] = None
    mac_address: Optional[str] = Field(None, pattern=MAC_ADDRESS_PATTERN)
    speed_test: Optional[Dict[str, Any]] = None

    @field_validator("speed_test", mode="before")
    @classmethod
    def _parse_speed_test(cls, value: Any) -> Any:
        # Browsers post the speed-test result as a JSON string.
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError as exc:
                raise ValueError("Speed test must be a JSON object") from exc
        return value


class NetworkIssueUpdate(BaseModel):
    status: Optional[IssueStatus] = None
    assigned_to_id: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _require_change(self) -> "NetworkIssueUpdate":
        if self.status is None and self.assigned_to_id is None:
            raise ValueError("Provide status or assigned_to_id")
        return self


class NetworkIssueRead(BaseModel):
    id: int
    title: str
    description: str
    issue_type: NetworkIssueType
    priority: IssuePriority
    status: IssueStatus
    ip_address: Optional[str]
    mac_address: Optional[str]
    speed_test: Optional[Dict[str, Any]]
    reporter_id: int
    assigned_to_id: Optional[int]
    reporter: UserSummary
    assigned_to: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=3, max_length=1000)


class CommentRead(BaseModel):
    id: int
    issue_id: int
    content: str
    author: UserSummary
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------- cleaning


class CleaningRequestCreate(BaseModel):
    room: str = Field(..., min_length=1, max_length=20)
    building: str = Field(..., min_length=1, max_length=100)
    cleaning_type: CleaningType
    scheduled_date: date
    time_slot: str = Field(..., min_length=1, max_length=50)
    special_instructions: Optional[str] = None


class CleaningStatusUpdate(BaseModel):
    status: Optional[CleaningStatus] = None
    cleaner_id: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _require_change(self) -> "CleaningStatusUpdate":
        if self.status is None and self.cleaner_id is None:
            raise ValueError("Provide status or cleaner_id")
        return self


class CleaningFeedbackCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


class CleaningRequestRead(BaseModel):
    id: int
    room: str
    building: str
    cleaning_type: CleaningType
    scheduled_date: date
    time_slot: str
    special_instructions: Optional[str]
    status: CleaningStatus
    student_id: int
    cleaner_id: Optional[int]
    student: UserSummary
    cleaner: Optional[UserSummary] = None
    rating: Optional[int]
    feedback: Optional[str]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class CleanerDirectory(BaseModel):
    count: int
    data: List[UserRead]


# ---------------------------------------------------------------- mess


class MenuItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    dietary_type: DietaryType


class MenuItemRead(MenuItemIn):
    model_config = {"from_attributes": True}


class MenuCreate(BaseModel):
    date: dt.date
    meal_type: MealType
    serving_time: Optional[str] = Field(None, pattern=SERVING_TIME_PATTERN)
    items: List[MenuItemIn] = Field(..., min_length=1)

    @field_validator("meal_type", mode="before")
    @classmethod
    def _upper_meal_type(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class MenuUpdate(BaseModel):
    date: Optional[dt.date] = None
    meal_type: Optional[MealType] = None
    serving_time: Optional[str] = Field(None, pattern=SERVING_TIME_PATTERN)
    items: Optional[List[MenuItemIn]] = Field(None, min_length=1)

    @field_validator("meal_type", mode="before")
    @classmethod
    def _upper_meal_type(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class MenuRead(BaseModel):
    id: int
    date: dt.date
    meal_type: MealType
    serving_time: Optional[str]
    is_recurring: bool
    recurrence_ends_at: Optional[date]
    base_menu_id: Optional[int]
    items: List[MenuItemRead]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RecurringMenuCreate(BaseModel):
    start_date: date
    end_date: date
    meal_type: MealType
    serving_time: Optional[str] = Field(None, pattern=SERVING_TIME_PATTERN)
    items: List[MenuItemIn] = Field(..., min_length=1)
    frequency: Frequency
    days_of_week: Optional[List[int]] = None

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError("Day of week must be 0-6 (0=Sunday)")
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "RecurringMenuCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.frequency is Frequency.WEEKLY and not self.days_of_week:
            raise ValueError("days_of_week is required for WEEKLY frequency")
        return self


class RecurringMenuResult(BaseModel):
    base_menu_id: int
    count: int
    dates: List[date]


class MenuSeries(BaseModel):
    base_menu_id: int
    count: int
    data: List[MenuRead]


class MealFeedbackCreate(BaseModel):
    menu_id: int = Field(..., gt=0)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class MealFeedbackRead(BaseModel):
    id: int
    user_id: int
    menu_id: int
    rating: int
    comment: Optional[str]
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ImportRowError(BaseModel):
    row: int
    error: str
    data: Dict[str, Any]


class ImportResult(BaseModel):
    imported: int
    total: int
    errors: List[ImportRowError]


# ---------------------------------------------------------------- transport


class VehicleCreate(BaseModel):
    type: VehicleType
    number: str = Field(..., min_length=1, max_length=30)
    capacity: int = Field(..., ge=1)
    driver_id: Optional[int] = Field(None, gt=0)


class VehicleUpdate(BaseModel):
    type: Optional[VehicleType] = None
    number: Optional[str] = Field(None, min_length=1, max_length=30)
    capacity: Optional[int] = Field(None, ge=1)
    status: Optional[VehicleStatus] = None
    driver_id: Optional[int] = Field(None, gt=0)


class VehicleRead(BaseModel):
    id: int
    type: VehicleType
    number: str
    capacity: int
    status: VehicleStatus
    driver_id: Optional[int]
    driver: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class RouteCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: str = ""
    start_point: str = Field(..., min_length=1)
    end_point: str = Field(..., min_length=1)
    stops: List[str] = Field(default_factory=list)


class RouteUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None
    start_point: Optional[str] = Field(None, min_length=1)
    end_point: Optional[str] = Field(None, min_length=1)
    stops: Optional[List[str]] = None


class RouteRead(BaseModel):
    id: int
    name: str
    description: str
    start_point: str
    end_point: str
    stops: List[str]

    model_config = {"from_attributes": True}


class ScheduleCreate(BaseModel):
    route_id: int = Field(..., gt=0)
    vehicle_id: int = Field(..., gt=0)
    day: Weekday
    start_time: str = Field(..., pattern=CLOCK_TIME_PATTERN)
    end_time: str = Field(..., pattern=CLOCK_TIME_PATTERN)
    start_date: date
    end_date: date
    max_capacity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)

    @field_validator("day", mode="before")
    @classmethod
    def _upper_day(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_windows(self) -> "ScheduleCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be after or equal to start date")
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class ScheduleUpdate(BaseModel):
    start_time: Optional[str] = Field(None, pattern=CLOCK_TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=CLOCK_TIME_PATTERN)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_capacity: Optional[int] = Field(None, ge=1)
    price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ScheduleRead(BaseModel):
    id: int
    route_id: int
    vehicle_id: int
    day: Weekday
    start_time: str
    end_time: str
    start_date: date
    end_date: date
    max_capacity: int
    price: float
    is_active: bool

    model_config = {"from_attributes": True}


class ScheduleLoad(ScheduleRead):
    confirmed_bookings: int


class RouteWithSchedules(RouteRead):
    schedules: List[ScheduleLoad]


class ScheduleDetail(ScheduleRead):
    route: RouteRead
    vehicle: VehicleRead


class BookingCreate(BaseModel):
    schedule_id: int = Field(..., gt=0)
    booking_date: date


class BookingRead(BaseModel):
    id: int
    user_id: int
    schedule_id: int
    vehicle_id: int
    booking_date: date
    status: BookingStatus
    schedule: ScheduleDetail
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SeatAvailability(BaseModel):
    schedule_id: int
    booking_date: date
    max_capacity: int
    booked: int
    available: int

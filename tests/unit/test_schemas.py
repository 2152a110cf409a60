"""Unit tests for schema validation."""
import os
from datetime import date

import pytest
from pydantic import ValidationError

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from hostelsync.models import MealType, RoleEnum, Weekday
from hostelsync.recurrence import Frequency
from hostelsync.schemas import (
    CleaningStatusUpdate,
    MealFeedbackCreate,
    MenuCreate,
    NetworkIssueCreate,
    RecurringMenuCreate,
    RegisterRequest,
    ScheduleCreate,
    WaterIssueCreate,
)

ITEMS = [{"name": "Poha", "dietary_type": "VEG"}]


class TestUserSchemas:
    """Registration payloads."""

    def test_register_defaults_to_student_and_lowercases_email(self):
        user = RegisterRequest(name="Jane", email="Jane@Example.com", password="SecurePass123!")

        assert user.role == RoleEnum.STUDENT
        assert user.email == "jane@example.com"

    def test_register_rejects_short_password(self):
        with pytest.raises(ValidationError):
            RegisterRequest(name="Jane", email="jane@example.com", password="short")


class TestMenuSchemas:
    """Menu and recurrence payloads."""

    def test_meal_type_is_case_insensitive(self):
        menu = MenuCreate(date=date(2025, 11, 10), meal_type="lunch", items=ITEMS)

        assert menu.meal_type == MealType.LUNCH

    @pytest.mark.parametrize("serving_time", ["24:00", "8:6", "noon"])
    def test_serving_time_format(self, serving_time):
        with pytest.raises(ValidationError):
            MenuCreate(date=date(2025, 11, 10), meal_type="LUNCH", serving_time=serving_time, items=ITEMS)

    def test_menu_requires_items(self):
        with pytest.raises(ValidationError):
            MenuCreate(date=date(2025, 11, 10), meal_type="LUNCH", items=[])

    def test_recurring_requires_end_after_start(self):
        with pytest.raises(ValidationError):
            RecurringMenuCreate(
                start_date=date(2025, 11, 10),
                end_date=date(2025, 11, 10),
                meal_type="LUNCH",
                items=ITEMS,
                frequency="DAILY",
            )

    def test_recurring_weekly_requires_days(self):
        with pytest.raises(ValidationError):
            RecurringMenuCreate(
                start_date=date(2025, 11, 10),
                end_date=date(2025, 11, 20),
                meal_type="LUNCH",
                items=ITEMS,
                frequency="WEEKLY",
            )

    def test_recurring_rejects_day_out_of_range(self):
        with pytest.raises(ValidationError):
            RecurringMenuCreate(
                start_date=date(2025, 11, 10),
                end_date=date(2025, 11, 20),
                meal_type="LUNCH",
                items=ITEMS,
                frequency="WEEKLY",
                days_of_week=[7],
            )

    def test_recurring_valid(self):
        payload = RecurringMenuCreate(
            start_date=date(2025, 11, 10),
            end_date=date(2025, 11, 20),
            meal_type="DINNER",
            items=ITEMS,
            frequency="WEEKDAYS",
        )

        assert payload.frequency is Frequency.WEEKDAYS

    def test_feedback_rating_bounds(self):
        with pytest.raises(ValidationError):
            MealFeedbackCreate(menu_id=1, rating=6)


class TestScheduleSchema:
    """Transport schedule payloads."""

    def _payload(self, **overrides):
        payload = {
            "route_id": 1,
            "vehicle_id": 1,
            "day": "monday",
            "start_time": "08:00",
            "end_time": "09:00",
            "start_date": date(2025, 11, 1),
            "end_date": date(2025, 12, 1),
            "max_capacity": 30,
            "price": 10,
        }
        payload.update(overrides)
        return payload

    def test_day_is_normalised(self):
        assert ScheduleCreate(**self._payload()).day == Weekday.MONDAY

    def test_end_time_after_start_time(self):
        with pytest.raises(ValidationError):
            ScheduleCreate(**self._payload(end_time="07:30"))

    def test_window_order(self):
        with pytest.raises(ValidationError):
            ScheduleCreate(**self._payload(end_date=date(2025, 10, 1)))


class TestIssueSchemas:
    """Issue payloads."""

    def test_water_title_length(self):
        with pytest.raises(ValidationError):
            WaterIssueCreate(title="Tap", description="Dripping all night long", location="B-2")

    def test_network_speed_test_parsed_from_json_string(self):
        issue = NetworkIssueCreate(
            title="Slow network",
            description="Speeds drop every evening.",
            issue_type="SPEED",
            speed_test='{"download": 2.5}',
        )

        assert issue.speed_test == {"download": 2.5}

    def test_network_bad_mac_address(self):
        with pytest.raises(ValidationError):
            NetworkIssueCreate(
                title="Slow network",
                description="Speeds drop every evening.",
                issue_type="SPEED",
                mac_address="not-a-mac",
            )

    def test_cleaning_update_needs_a_change(self):
        with pytest.raises(ValidationError):
            CleaningStatusUpdate()

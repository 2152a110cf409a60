#!/usr/bin/env python3
"""Script to add the composite indexes used by scoped listings and seat counts."""
from typing import List, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from hostelsync.config import get_settings

INDEXES: List[Tuple[str, str, str]] = [
    # Booking history per user
    ("idx_bookings_user_date", "transport_bookings", "user_id, booking_date"),
    # Worker pools: assignee + status
    ("idx_water_issues_plumber_status", "water_issues", "plumber_id, status"),
    ("idx_network_issues_assignee_status", "network_issues", "assigned_to_id, status"),
    ("idx_cleaning_requests_cleaner_status", "cleaning_requests", "cleaner_id, status"),
    # Feedback per menu
    ("idx_meal_feedback_menu", "meal_feedback", "menu_id, created_at"),
]


def add_indexes(engine: Optional[Engine] = None) -> List[str]:
    engine = engine or create_engine(get_settings().database_url)
    created: List[str] = []
    with engine.begin() as conn:
        for name, table, columns in INDEXES:
            conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({columns})"))
            created.append(name)
    return created


if __name__ == "__main__":
    for index_name in add_indexes():
        print(f"  {index_name}")
    print("Indexes added successfully.")

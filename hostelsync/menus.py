"""Menu persistence helpers: upsert by (date, meal type) and recurring series."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from .cache import invalidate_menus, week_start
from .models import MealFeedback, MealType, MenuItem, MessMenu
from .recurrence import Frequency, generate_dates

logger = logging.getLogger("hostelsync.menus")


def set_items(menu: MessMenu, items: Iterable) -> None:
    """Replace the menu's items, keeping the given order."""

    menu.items = [
        MenuItem(position=position, name=item.name, dietary_type=item.dietary_type)
        for position, item in enumerate(items)
    ]


def find_menu(db: Session, menu_date: date, meal_type: MealType) -> Optional[MessMenu]:
    return db.execute(
        select(MessMenu).where(MessMenu.date == menu_date, MessMenu.meal_type == meal_type)
    ).scalar_one_or_none()


def upsert_menu(
    db: Session,
    menu_date: date,
    meal_type: MealType,
    items: Sequence,
    serving_time: Optional[str] = None,
) -> Tuple[MessMenu, bool]:
    """Create or overwrite the (date, meal_type) menu. Returns ``(menu, created)``."""

    menu = find_menu(db, menu_date, meal_type)
    created = menu is None
    if created:
        menu = MessMenu(date=menu_date, meal_type=meal_type)
        db.add(menu)
    menu.serving_time = serving_time
    set_items(menu, items)
    db.flush()
    return menu, created


def week_menus(db: Session, today: date) -> List[MessMenu]:
    start = week_start(today)
    return list(
        db.execute(
            select(MessMenu)
            .options(selectinload(MessMenu.items))
            .where(MessMenu.date >= start, MessMenu.date <= start + timedelta(days=6))
            .order_by(MessMenu.date, MessMenu.meal_type)
        ).scalars()
    )


def menu_date_range(db: Session) -> Tuple[Optional[date], Optional[date]]:
    return db.execute(select(func.min(MessMenu.date), func.max(MessMenu.date))).one()


def feedback_count(db: Session, menu_ids: Sequence[int]) -> int:
    if not menu_ids:
        return 0
    return db.execute(
        select(func.count(MealFeedback.id)).where(MealFeedback.menu_id.in_(menu_ids))
    ).scalar_one()


def _detach_leftovers(db: Session, member_ids: Sequence[int]) -> None:
    """Drop rows whose base is joining a new series but which are not in it themselves."""

    leftovers = db.execute(
        select(MessMenu).where(MessMenu.base_menu_id.in_(member_ids), MessMenu.id.not_in(member_ids))
    ).scalars()
    for orphan in leftovers:
        orphan.base_menu_id = None
        orphan.is_recurring = False
        orphan.recurrence_ends_at = None


def create_series(
    db: Session,
    start: date,
    end: date,
    meal_type: MealType,
    items: Sequence,
    frequency: Frequency,
    days_of_week: Optional[Sequence[int]] = None,
    serving_time: Optional[str] = None,
    max_days: Optional[int] = None,
) -> List[MessMenu]:
    if max_days is not None and (end - start).days > max_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Recurring range cannot exceed {max_days} days",
        )
    try:
        dates = generate_dates(start, end, frequency, days_of_week)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not dates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No dates match the recurrence pattern",
        )

    series: List[MessMenu] = []
    for menu_date in dates:
        menu, _ = upsert_menu(db, menu_date, meal_type, items, serving_time)
        series.append(menu)

    base = series[0]
    _detach_leftovers(db, [menu.id for menu in series])
    for menu in series:
        menu.is_recurring = True
        menu.recurrence_ends_at = end
        menu.base_menu_id = None if menu is base else base.id
    db.commit()
    invalidate_menus()
    logger.info("Created %s %s menus from %s to %s (base %s)", len(series), meal_type.value, start, end, base.id)
    return series


def series_members(db: Session, base_id: int) -> List[MessMenu]:
    return list(
        db.execute(
            select(MessMenu)
            .options(selectinload(MessMenu.items))
            .where(or_(MessMenu.id == base_id, MessMenu.base_menu_id == base_id))
            .order_by(MessMenu.date)
        ).scalars()
    )


def get_series(db: Session, base_id: int) -> List[MessMenu]:
    base = db.get(MessMenu, base_id)
    if base is None or base.base_menu_id is not None or not base.is_recurring:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring menu not found")
    return series_members(db, base_id)


def delete_series(db: Session, base_id: int) -> int:
    members = get_series(db, base_id)
    if feedback_count(db, [menu.id for menu in members]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a recurring menu that has feedback",
        )
    children = [menu for menu in members if menu.id != base_id]
    base = next(menu for menu in members if menu.id == base_id)
    for menu in children:
        db.delete(menu)
    db.flush()
    db.delete(base)
    db.commit()
    invalidate_menus()
    logger.info("Deleted recurring menu %s (%s rows)", base_id, len(members))
    return len(members)

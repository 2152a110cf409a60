"""CSV export and import of mess menus."""
from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import DietaryType, MealType, MessMenu
from .menus import upsert_menu
from .schemas import SERVING_TIME_PATTERN

logger = logging.getLogger("hostelsync.menu_csv")

EXPORT_HEADERS = ["date", "mealType", "servingTime", "isRecurring", "items"]
TEMPLATE_HEADERS = ["date", "mealType", "servingTime", "items"]
REQUIRED_COLUMNS = ("date", "mealType", "items")
TEMPLATE_ROWS = [
    ["2025-11-10", "BREAKFAST", "08:00", "Idli (VEG), Sambar (VEG), Boiled Eggs (NON_VEG)"],
    ["2025-11-10", "LUNCH", "13:00", "Rice (VEG), Dal Tadka (VEG), Paneer Butter Masala (JAIN)"],
    ["2025-11-10", "DINNER", "20:00", "Chapati (VEG), Chicken Curry (NON_VEG)"],
]

_ITEM_PATTERN = re.compile(r"^(?P<name>.*?)\s*\((?P<type>[^()]*)\)\s*$")
_SERVING_TIME = re.compile(SERVING_TIME_PATTERN)


@dataclass
class ParsedItem:
    name: str
    dietary_type: DietaryType


def format_items(items: Iterable) -> str:
    return ", ".join(f"{item.name} ({item.dietary_type.value})" for item in items)


def parse_items(text: str) -> List[ParsedItem]:
    """Parse ``"Idli (VEG), Chicken (NON_VEG)"``. Unknown or missing types become VEG."""

    parsed: List[ParsedItem] = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        match = _ITEM_PATTERN.match(chunk)
        name, raw_type = (match.group("name"), match.group("type")) if match else (chunk, "")
        name = name.strip()
        if not name:
            continue
        try:
            dietary_type = DietaryType(raw_type.strip().upper())
        except ValueError:
            dietary_type = DietaryType.VEG
        parsed.append(ParsedItem(name=name, dietary_type=dietary_type))
    return parsed


def write_menus_csv(path: Path, menus: Iterable[MessMenu]) -> int:
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(EXPORT_HEADERS)
        for menu in menus:
            writer.writerow(
                [
                    menu.date.isoformat(),
                    menu.meal_type.value,
                    menu.serving_time or "",
                    "Yes" if menu.is_recurring else "No",
                    format_items(menu.items),
                ]
            )
            count += 1
    return count


def write_template(path: Path) -> None:
    with open(path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(TEMPLATE_HEADERS)
        writer.writerows(TEMPLATE_ROWS)


class CsvFormatError(ValueError):
    """The file as a whole cannot be imported."""


def parse_row(row: Dict[str, Optional[str]]) -> Tuple[date, MealType, Optional[str], List[ParsedItem]]:
    raw_date = (row.get("date") or "").strip()
    raw_meal = (row.get("mealType") or "").strip()
    raw_items = (row.get("items") or "").strip()
    raw_time = (row.get("servingTime") or "").strip()

    if not raw_date or not raw_meal or not raw_items:
        raise ValueError("Missing required fields: date, mealType, items")
    try:
        menu_date = datetime.strptime(raw_date, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"Invalid date format: {raw_date}. Use YYYY-MM-DD") from exc
    try:
        meal_type = MealType(raw_meal.upper())
    except ValueError as exc:
        raise ValueError(f"Invalid meal type: {raw_meal}") from exc
    if raw_time and not _SERVING_TIME.match(raw_time):
        raise ValueError(f"Invalid serving time: {raw_time}. Use HH:MM")
    items = parse_items(raw_items)
    if not items:
        raise ValueError("No valid items found")
    return menu_date, meal_type, raw_time or None, items


def import_menus_csv(db: Session, path: Path) -> Dict[str, Any]:
    """Upsert every valid row of the CSV at ``path``; one savepoint per row."""

    with open(path, newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        headers = [name.strip() for name in (reader.fieldnames or [])]
        missing = [column for column in REQUIRED_COLUMNS if column not in headers]
        if missing:
            raise CsvFormatError(f"Missing required columns: {', '.join(missing)}")
        reader.fieldnames = headers
        rows = list(reader)

    if not rows:
        raise CsvFormatError("CSV file contains no data rows")

    imported = 0
    errors: List[Dict[str, Any]] = []
    for index, row in enumerate(rows):
        data = {key: value for key, value in row.items() if key is not None}
        try:
            menu_date, meal_type, serving_time, items = parse_row(data)
        except ValueError as exc:
            errors.append({"row": index + 2, "error": str(exc), "data": data})
            continue
        try:
            with db.begin_nested():
                upsert_menu(db, menu_date, meal_type, items, serving_time)
        except SQLAlchemyError:
            logger.exception("Failed to import menu row %s", index + 2)
            errors.append({"row": index + 2, "error": "Could not save menu", "data": data})
            continue
        imported += 1
    db.commit()
    logger.info("Imported %s of %s menu rows", imported, len(rows))
    return {"imported": imported, "total": len(rows), "errors": errors}

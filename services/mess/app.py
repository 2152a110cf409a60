import logging
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional

from fastapi import Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from hostelsync.app_factory import build_app
from hostelsync.cache import invalidate_menus, week_cache_key, weekly_menu_cache
from hostelsync.config import get_settings
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.menu_csv import CsvFormatError, import_menus_csv, write_menus_csv, write_template
from hostelsync.menus import (
    create_series,
    delete_series,
    feedback_count,
    find_menu,
    get_series,
    menu_date_range,
    set_items,
    upsert_menu,
    week_menus,
)
from hostelsync.models import MealFeedback, MessMenu, User
from hostelsync.rate_limit import limiter
from hostelsync.schemas import (
    ImportResult,
    MealFeedbackCreate,
    MealFeedbackRead,
    MenuCreate,
    MenuRead,
    MenuSeries,
    MenuUpdate,
    RecurringMenuCreate,
    RecurringMenuResult,
)
from hostelsync.scoping import MEAL_FEEDBACK_SCOPE, visibility_clause
from hostelsync.updates import apply_update

settings = get_settings()
logger = logging.getLogger("hostelsync.mess_service")

app = build_app("Mess Service", "mess")


def _transient_file(directory: str, prefix: str) -> Path:
    Path(directory).mkdir(parents=True, exist_ok=True)
    handle, name = tempfile.mkstemp(prefix=prefix, suffix=".csv", dir=directory)
    os.close(handle)
    return Path(name)


def _csv_download(prefix: str, filename: str, write: Callable[[Path], object]) -> Response:
    """Render a CSV into the export directory and send it; the file never outlives the request."""

    path = _transient_file(settings.export_dir, prefix)
    try:
        write(path)
        content = path.read_bytes()
    finally:
        path.unlink(missing_ok=True)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _get_menu_or_404(db: Session, menu_id: int) -> MessMenu:
    menu = db.get(MessMenu, menu_id)
    if not menu:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu not found")
    return menu


@app.get("/mess/menu/week", response_model=List[MenuRead])
@limiter.limit("60/minute")
def current_week_menu(request: Request, db: Session = Depends(get_db)) -> List[dict]:
    today = date.today()
    cache_key = week_cache_key(today)
    cached = weekly_menu_cache.get(cache_key)
    if cached is not None:
        return cached

    menus = week_menus(db, today)
    if not menus:
        first, last = menu_date_range(db)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": "No menu found for the current week",
                "available_from": first.isoformat() if first else None,
                "available_to": last.isoformat() if last else None,
            },
        )
    payload = [MenuRead.model_validate(menu).model_dump(mode="json") for menu in menus]
    weekly_menu_cache.set(cache_key, payload)
    return payload


@app.post("/mess/menu", response_model=MenuRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def save_menu(
    request: Request,
    menu_in: MenuCreate,
    current_user: User = Depends(require_permission("mess.menu", "write")),
    db: Session = Depends(get_db),
) -> MessMenu:
    menu, created = upsert_menu(db, menu_in.date, menu_in.meal_type, menu_in.items, menu_in.serving_time)
    db.commit()
    db.refresh(menu)
    invalidate_menus()
    logger.info("%s %s menu for %s", "Created" if created else "Replaced", menu.meal_type.value, menu.date)
    return menu


@app.put("/mess/menu/{menu_id}", response_model=MenuRead)
@limiter.limit("30/minute")
def update_menu(
    request: Request,
    menu_id: int,
    menu_update: MenuUpdate,
    current_user: User = Depends(require_permission("mess.menu", "write")),
    db: Session = Depends(get_db),
) -> MessMenu:
    menu = _get_menu_or_404(db, menu_id)
    target_date = menu_update.date or menu.date
    target_meal = menu_update.meal_type or menu.meal_type
    clash = find_menu(db, target_date, target_meal)
    if clash is not None and clash.id != menu.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A menu already exists for this date and meal type",
        )

    apply_update(menu, menu_update, exclude=("items",), nullable=("serving_time",))
    if menu_update.items is not None:
        set_items(menu, menu_update.items)
    db.commit()
    db.refresh(menu)
    invalidate_menus()
    return menu


@app.delete("/mess/menu/{menu_id}")
@limiter.limit("30/minute")
def delete_menu(
    request: Request,
    menu_id: int,
    current_user: User = Depends(require_permission("mess.menu", "delete")),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    menu = _get_menu_or_404(db, menu_id)
    has_children = db.execute(select(MessMenu.id).where(MessMenu.base_menu_id == menu.id)).first()
    if has_children is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This menu is the base of a recurring series; delete the series instead",
        )
    if feedback_count(db, [menu.id]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete a menu that has feedback")
    db.delete(menu)
    db.commit()
    invalidate_menus()
    return {"message": "Menu deleted successfully"}


@app.post("/mess/feedback", response_model=MealFeedbackRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def submit_feedback(
    request: Request,
    feedback_in: MealFeedbackCreate,
    current_user: User = Depends(require_permission("mess.feedback", "create")),
    db: Session = Depends(get_db),
) -> MealFeedback:
    menu = _get_menu_or_404(db, feedback_in.menu_id)
    if menu.date > date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Feedback can only be given for meals that have been served",
        )
    existing = (
        db.query(MealFeedback)
        .filter(MealFeedback.user_id == current_user.id, MealFeedback.menu_id == menu.id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You have already rated this meal")

    feedback = MealFeedback(
        user_id=current_user.id,
        menu_id=menu.id,
        rating=feedback_in.rating,
        comment=feedback_in.comment,
    )
    db.add(feedback)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You have already rated this meal") from exc
    db.refresh(feedback)
    return feedback


@app.get("/mess/feedback", response_model=List[MealFeedbackRead])
@limiter.limit("30/minute")
def list_feedback(
    request: Request,
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(require_permission("mess.feedback", "read")),
    db: Session = Depends(get_db),
) -> List[MealFeedback]:
    query = (
        db.query(MealFeedback)
        .join(MessMenu, MessMenu.id == MealFeedback.menu_id)
        .filter(visibility_clause(MEAL_FEEDBACK_SCOPE, current_user))
    )
    if status_filter:
        query = query.filter(MealFeedback.status == status_filter.upper())
    if start_date:
        query = query.filter(MessMenu.date >= start_date)
    if end_date:
        query = query.filter(MessMenu.date <= end_date)
    return query.order_by(MealFeedback.created_at.desc()).all()


@app.post("/mess/menu/recurring", response_model=RecurringMenuResult, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_recurring_menu(
    request: Request,
    recurring_in: RecurringMenuCreate,
    current_user: User = Depends(require_permission("mess.recurring", "write")),
    db: Session = Depends(get_db),
) -> RecurringMenuResult:
    series = create_series(
        db,
        recurring_in.start_date,
        recurring_in.end_date,
        recurring_in.meal_type,
        recurring_in.items,
        recurring_in.frequency,
        days_of_week=recurring_in.days_of_week,
        serving_time=recurring_in.serving_time,
        max_days=settings.max_recurrence_days,
    )
    return RecurringMenuResult(
        base_menu_id=series[0].id,
        count=len(series),
        dates=[menu.date for menu in series],
    )


@app.get("/mess/menu/recurring/{base_menu_id}", response_model=MenuSeries)
@limiter.limit("30/minute")
def read_recurring_menu(
    request: Request,
    base_menu_id: int,
    current_user: User = Depends(require_permission("mess.recurring", "read")),
    db: Session = Depends(get_db),
) -> MenuSeries:
    members = get_series(db, base_menu_id)
    return MenuSeries(
        base_menu_id=base_menu_id,
        count=len(members),
        data=[MenuRead.model_validate(menu) for menu in members],
    )


@app.delete("/mess/menu/recurring/{base_menu_id}")
@limiter.limit("10/minute")
def delete_recurring_menu(
    request: Request,
    base_menu_id: int,
    current_user: User = Depends(require_permission("mess.recurring", "delete")),
    db: Session = Depends(get_db),
) -> dict[str, int | str]:
    deleted = delete_series(db, base_menu_id)
    return {"message": "Recurring menu deleted successfully", "deleted": deleted}


@app.get("/mess/menu/export")
@limiter.limit("10/minute")
def export_menus(
    request: Request,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(require_permission("mess.csv", "export")),
    db: Session = Depends(get_db),
) -> Response:
    query = select(MessMenu).options(selectinload(MessMenu.items))
    if start_date:
        query = query.where(MessMenu.date >= start_date)
    if end_date:
        query = query.where(MessMenu.date <= end_date)
    menus = db.execute(query.order_by(MessMenu.date, MessMenu.meal_type)).scalars().all()
    if not menus:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No menus found for the selected range")

    stamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    return _csv_download("menus-", f"mess_menus_{stamp}.csv", lambda path: write_menus_csv(path, menus))


@app.get("/mess/menu/template")
@limiter.limit("20/minute")
def download_template(
    request: Request,
    current_user: User = Depends(require_permission("mess.csv", "import")),
) -> Response:
    return _csv_download("template-", "mess_menu_template.csv", write_template)


@app.post("/mess/menu/import", response_model=ImportResult)
@limiter.limit("5/minute")
def import_menus(
    request: Request,
    file: UploadFile = File(...),
    current_user: User = Depends(require_permission("mess.csv", "import")),
    db: Session = Depends(get_db),
) -> dict:
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only CSV files are allowed")

    path = _transient_file(settings.upload_dir, "upload-")
    try:
        size = 0
        with open(path, "wb") as target:
            while chunk := file.file.read(64 * 1024):
                size += len(chunk)
                if size > settings.max_import_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="CSV file is too large",
                    )
                target.write(chunk)
        try:
            result = import_menus_csv(db, path)
        except CsvFormatError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file must be UTF-8 encoded") from exc
    finally:
        path.unlink(missing_ok=True)
    invalidate_menus()
    logger.info("User %s imported %s/%s menus", current_user.id, result["imported"], result["total"])
    return result

"""Seat reservation and cancellation for transport schedules.

The capacity check and the insert are one ``INSERT ... SELECT`` whose WHERE
clause counts the confirmed bookings, so two requests racing for the last
seat cannot both succeed.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import Date, DateTime, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import BookingStatus, Schedule, TransportBooking, User, Weekday

logger = logging.getLogger("hostelsync.booking")

_WEEKDAYS = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)


def weekday_of(day: date) -> Weekday:
    return _WEEKDAYS[day.weekday()]


def confirmed_count_query(schedule_id, booking_date):
    return select(func.count(TransportBooking.id)).where(
        TransportBooking.schedule_id == schedule_id,
        TransportBooking.booking_date == booking_date,
        TransportBooking.status == BookingStatus.CONFIRMED,
    )


def confirmed_count(db: Session, schedule_id: int, booking_date: date) -> int:
    return db.execute(confirmed_count_query(schedule_id, booking_date)).scalar_one()


def peak_confirmed(db: Session, schedule_id: int, since: date) -> int:
    """Highest confirmed-seat count on any date from ``since`` onwards."""

    per_date = (
        select(func.count(TransportBooking.id).label("seats"))
        .where(
            TransportBooking.schedule_id == schedule_id,
            TransportBooking.booking_date >= since,
            TransportBooking.status == BookingStatus.CONFIRMED,
        )
        .group_by(TransportBooking.booking_date)
        .subquery()
    )
    return db.execute(select(func.coalesce(func.max(per_date.c.seats), 0))).scalar_one()


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def check_bookable(schedule: Schedule, booking_date: date, today: date) -> None:
    if not schedule.is_active:
        raise _bad_request("Schedule is not active")
    if booking_date < today:
        raise _bad_request("Cannot book for a past date")
    if booking_date < schedule.start_date or booking_date > schedule.end_date:
        raise _bad_request("Booking date is outside the schedule period")
    if weekday_of(booking_date) != schedule.day:
        raise _bad_request(f"This schedule only runs on {schedule.day.value}")


def reserve_seat(
    db: Session,
    user: User,
    schedule_id: int,
    booking_date: date,
    today: Optional[date] = None,
) -> TransportBooking:
    """Book one seat on ``schedule_id`` for ``booking_date`` or raise 400/404."""

    today = today or date.today()
    schedule = db.execute(
        select(Schedule).where(Schedule.id == schedule_id).with_for_update()
    ).scalar_one_or_none()
    if schedule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule not found")
    check_bookable(schedule, booking_date, today)

    duplicate = db.execute(
        select(TransportBooking.id).where(
            TransportBooking.user_id == user.id,
            TransportBooking.schedule_id == schedule.id,
            TransportBooking.booking_date == booking_date,
        )
    ).first()
    if duplicate is not None:
        raise _bad_request("You have already booked this slot")

    now = datetime.utcnow()
    status_type = TransportBooking.__table__.c.status.type
    seats_left = confirmed_count_query(schedule.id, booking_date).scalar_subquery() < schedule.max_capacity
    statement = insert(TransportBooking.__table__).from_select(
        ["user_id", "schedule_id", "vehicle_id", "booking_date", "status", "created_at", "updated_at"],
        select(
            literal(user.id),
            literal(schedule.id),
            literal(schedule.vehicle_id),
            literal(booking_date, Date()),
            literal(BookingStatus.CONFIRMED, status_type),
            literal(now, DateTime()),
            literal(now, DateTime()),
        ).where(seats_left),
    )
    try:
        result = db.execute(statement)
    except IntegrityError as exc:
        db.rollback()
        raise _bad_request("You have already booked this slot") from exc
    if result.rowcount == 0:
        db.rollback()
        logger.info("Schedule %s is full on %s", schedule_id, booking_date)
        raise _bad_request("No available seats")
    db.commit()

    booking = db.execute(
        select(TransportBooking).where(
            TransportBooking.user_id == user.id,
            TransportBooking.schedule_id == schedule_id,
            TransportBooking.booking_date == booking_date,
        )
    ).scalar_one()
    logger.info("User %s booked schedule %s on %s", user.id, schedule_id, booking_date)
    return booking


def cancel_booking(db: Session, user: User, booking_id: int, today: Optional[date] = None) -> TransportBooking:
    today = today or date.today()
    booking = db.get(TransportBooking, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only cancel your own bookings")
    if booking.status == BookingStatus.CANCELLED:
        raise _bad_request("Booking is already cancelled")
    if booking.booking_date <= today:
        raise _bad_request("Cannot cancel past bookings")
    booking.status = BookingStatus.CANCELLED
    db.commit()
    db.refresh(booking)
    logger.info("User %s cancelled booking %s", user.id, booking_id)
    return booking

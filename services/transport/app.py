import logging
from datetime import date
from typing import List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from hostelsync.app_factory import build_app
from hostelsync.booking import cancel_booking, confirmed_count, peak_confirmed, reserve_seat
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.models import (
    BookingStatus,
    RoleEnum,
    Route,
    Schedule,
    TransportBooking,
    User,
    Vehicle,
    VehicleStatus,
    Weekday,
)
from hostelsync.rate_limit import limiter
from hostelsync.schemas import (
    BookingCreate,
    BookingRead,
    RouteCreate,
    RouteRead,
    RouteUpdate,
    RouteWithSchedules,
    ScheduleCreate,
    ScheduleLoad,
    ScheduleRead,
    ScheduleUpdate,
    SeatAvailability,
    VehicleCreate,
    VehicleRead,
    VehicleUpdate,
)
from hostelsync.scoping import BOOKING_SCOPE, visibility_clause
from hostelsync.updates import apply_update
from hostelsync.workflow import resolve_assignee

logger = logging.getLogger("hostelsync.transport_service")

app = build_app("Transport Service", "transport")

manage_transport = require_permission("transport.admin", "manage")
_DAY_ORDER = list(Weekday)


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def _bad_request(detail) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ---------------------------------------------------------------- public reads


@app.get("/transport/vehicles", response_model=List[VehicleRead])
@limiter.limit("60/minute")
def list_available_vehicles(request: Request, db: Session = Depends(get_db)) -> List[Vehicle]:
    return (
        db.query(Vehicle)
        .filter(Vehicle.status == VehicleStatus.AVAILABLE)
        .order_by(Vehicle.number)
        .all()
    )


@app.get("/transport/routes", response_model=List[RouteWithSchedules])
@limiter.limit("60/minute")
def list_routes(
    request: Request,
    booking_date: Optional[date] = None,
    db: Session = Depends(get_db),
) -> List[RouteWithSchedules]:
    """Routes with their active schedules and confirmed seats.

    Counts are for ``booking_date`` when given, otherwise for every upcoming date.
    """
    count_query = select(TransportBooking.schedule_id, func.count(TransportBooking.id)).where(
        TransportBooking.status == BookingStatus.CONFIRMED
    )
    if booking_date:
        count_query = count_query.where(TransportBooking.booking_date == booking_date)
    else:
        count_query = count_query.where(TransportBooking.booking_date >= date.today())
    counts = dict(db.execute(count_query.group_by(TransportBooking.schedule_id)).all())

    routes = db.execute(
        select(Route).options(selectinload(Route.schedules)).order_by(Route.name)
    ).scalars()
    result: List[RouteWithSchedules] = []
    for route in routes:
        schedules = [
            ScheduleLoad(
                **ScheduleRead.model_validate(schedule).model_dump(),
                confirmed_bookings=counts.get(schedule.id, 0),
            )
            for schedule in sorted(route.schedules, key=lambda item: (_DAY_ORDER.index(item.day), item.start_time))
            if schedule.is_active
        ]
        result.append(RouteWithSchedules(**RouteRead.model_validate(route).model_dump(), schedules=schedules))
    return result


@app.get("/transport/schedules/{schedule_id}/availability", response_model=SeatAvailability)
@limiter.limit("60/minute")
def seat_availability(
    request: Request,
    schedule_id: int,
    booking_date: date = Query(...),
    db: Session = Depends(get_db),
) -> SeatAvailability:
    schedule = db.get(Schedule, schedule_id)
    if not schedule:
        raise _not_found("Schedule")
    booked = confirmed_count(db, schedule.id, booking_date)
    return SeatAvailability(
        schedule_id=schedule.id,
        booking_date=booking_date,
        max_capacity=schedule.max_capacity,
        booked=booked,
        available=max(schedule.max_capacity - booked, 0),
    )


# ---------------------------------------------------------------- bookings


@app.post("/transport/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    current_user: User = Depends(require_permission("transport.booking", "create")),
    db: Session = Depends(get_db),
) -> TransportBooking:
    return reserve_seat(db, current_user, booking_in.schedule_id, booking_in.booking_date)


@app.get("/transport/bookings", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    current_user: User = Depends(require_permission("transport.booking", "read")),
    db: Session = Depends(get_db),
) -> List[TransportBooking]:
    return (
        db.query(TransportBooking)
        .filter(visibility_clause(BOOKING_SCOPE, current_user))
        .order_by(TransportBooking.booking_date.desc(), TransportBooking.id.desc())
        .all()
    )


@app.delete("/transport/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("20/minute")
def cancel(
    request: Request,
    booking_id: int,
    current_user: User = Depends(require_permission("transport.booking", "cancel")),
    db: Session = Depends(get_db),
) -> TransportBooking:
    return cancel_booking(db, current_user, booking_id)


# ---------------------------------------------------------------- admin: vehicles


def _check_driver(db: Session, driver_id: Optional[int]) -> None:
    if driver_id is not None:
        resolve_assignee(db, driver_id, [RoleEnum.DRIVER])


@app.get("/transport/admin/vehicles", response_model=List[VehicleRead])
@limiter.limit("30/minute")
def admin_list_vehicles(
    request: Request,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> List[Vehicle]:
    return db.query(Vehicle).order_by(Vehicle.number).all()


@app.post("/transport/admin/vehicles", response_model=VehicleRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_vehicle(
    request: Request,
    vehicle_in: VehicleCreate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Vehicle:
    if db.query(Vehicle).filter(Vehicle.number == vehicle_in.number).first():
        raise _bad_request("Vehicle number already exists")
    _check_driver(db, vehicle_in.driver_id)
    vehicle = Vehicle(**vehicle_in.model_dump())
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


@app.put("/transport/admin/vehicles/{vehicle_id}", response_model=VehicleRead)
@limiter.limit("20/minute")
def update_vehicle(
    request: Request,
    vehicle_id: int,
    vehicle_update: VehicleUpdate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Vehicle:
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise _not_found("Vehicle")
    if vehicle_update.number and vehicle_update.number != vehicle.number:
        if db.query(Vehicle).filter(Vehicle.number == vehicle_update.number).first():
            raise _bad_request("Vehicle number already exists")
    _check_driver(db, vehicle_update.driver_id)
    if vehicle_update.capacity is not None:
        largest = db.execute(
            select(func.max(Schedule.max_capacity)).where(Schedule.vehicle_id == vehicle.id)
        ).scalar()
        if largest is not None and vehicle_update.capacity < largest:
            raise _bad_request(
                {"message": "Capacity cannot be lower than a schedule's max capacity", "max_capacity": largest}
            )
    apply_update(vehicle, vehicle_update, nullable=("driver_id",))
    db.commit()
    db.refresh(vehicle)
    return vehicle


@app.delete("/transport/admin/vehicles/{vehicle_id}")
@limiter.limit("10/minute")
def delete_vehicle(
    request: Request,
    vehicle_id: int,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise _not_found("Vehicle")
    active = db.query(Schedule).filter(Schedule.vehicle_id == vehicle.id, Schedule.is_active.is_(True)).count()
    if active:
        raise _bad_request({"message": "Cannot delete vehicle with active schedules", "active_schedules": active})
    if db.query(Schedule).filter(Schedule.vehicle_id == vehicle.id).first():
        raise _bad_request("Vehicle still has inactive schedules; delete them first")
    db.delete(vehicle)
    db.commit()
    return {"message": "Vehicle deleted successfully"}


# ---------------------------------------------------------------- admin: routes


@app.post("/transport/admin/routes", response_model=RouteRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_route(
    request: Request,
    route_in: RouteCreate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Route:
    route = Route(**route_in.model_dump())
    db.add(route)
    db.commit()
    db.refresh(route)
    return route


@app.put("/transport/admin/routes/{route_id}", response_model=RouteRead)
@limiter.limit("20/minute")
def update_route(
    request: Request,
    route_id: int,
    route_update: RouteUpdate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Route:
    route = db.get(Route, route_id)
    if not route:
        raise _not_found("Route")
    apply_update(route, route_update)
    db.commit()
    db.refresh(route)
    return route


@app.delete("/transport/admin/routes/{route_id}")
@limiter.limit("10/minute")
def delete_route(
    request: Request,
    route_id: int,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    route = db.get(Route, route_id)
    if not route:
        raise _not_found("Route")
    schedules = db.query(Schedule).filter(Schedule.route_id == route.id).count()
    if schedules:
        raise _bad_request({"message": "Cannot delete route with schedules", "schedules": schedules})
    db.delete(route)
    db.commit()
    return {"message": "Route deleted successfully"}


# ---------------------------------------------------------------- admin: schedules


@app.get("/transport/admin/schedules", response_model=List[ScheduleRead])
@limiter.limit("30/minute")
def list_schedules(
    request: Request,
    route_id: Optional[int] = None,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> List[Schedule]:
    query = db.query(Schedule)
    if route_id:
        query = query.filter(Schedule.route_id == route_id)
    return query.order_by(Schedule.route_id, Schedule.day, Schedule.start_time).all()


@app.post("/transport/admin/schedules", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_schedule(
    request: Request,
    schedule_in: ScheduleCreate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Schedule:
    if not db.get(Route, schedule_in.route_id):
        raise _not_found("Route")
    vehicle = db.get(Vehicle, schedule_in.vehicle_id)
    if not vehicle:
        raise _not_found("Vehicle")
    if vehicle.status != VehicleStatus.AVAILABLE:
        raise _bad_request("Vehicle is not available")
    if schedule_in.max_capacity > vehicle.capacity:
        raise _bad_request("Max capacity cannot exceed vehicle capacity")
    duplicate = (
        db.query(Schedule)
        .filter(
            Schedule.route_id == schedule_in.route_id,
            Schedule.day == schedule_in.day,
            Schedule.start_time == schedule_in.start_time,
            Schedule.vehicle_id == schedule_in.vehicle_id,
        )
        .first()
    )
    if duplicate:
        raise _bad_request("Schedule already exists for this route, day, time and vehicle")

    schedule = Schedule(**schedule_in.model_dump())
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info("Created schedule %s on route %s", schedule.id, schedule.route_id)
    return schedule


@app.put("/transport/admin/schedules/{schedule_id}", response_model=ScheduleRead)
@limiter.limit("20/minute")
def update_schedule(
    request: Request,
    schedule_id: int,
    schedule_update: ScheduleUpdate,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> Schedule:
    schedule = db.execute(
        select(Schedule).where(Schedule.id == schedule_id).with_for_update()
    ).scalar_one_or_none()
    if not schedule:
        raise _not_found("Schedule")
    data = schedule_update.model_dump(exclude_unset=True, exclude_none=True)
    start_time = data.get("start_time", schedule.start_time)
    end_time = data.get("end_time", schedule.end_time)
    if end_time <= start_time:
        raise _bad_request("End time must be after start time")
    if data.get("end_date", schedule.end_date) < data.get("start_date", schedule.start_date):
        raise _bad_request("End date must be after or equal to start date")
    if data.get("max_capacity", schedule.max_capacity) > schedule.vehicle.capacity:
        raise _bad_request("Max capacity cannot exceed vehicle capacity")
    if "max_capacity" in data:
        booked = peak_confirmed(db, schedule.id, date.today())
        if data["max_capacity"] < booked:
            raise _bad_request(
                {"message": "Max capacity cannot be lower than seats already booked", "booked": booked}
            )
    apply_update(schedule, schedule_update)
    db.commit()
    db.refresh(schedule)
    return schedule


@app.delete("/transport/admin/schedules/{schedule_id}")
@limiter.limit("10/minute")
def delete_schedule(
    request: Request,
    schedule_id: int,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    schedule = db.get(Schedule, schedule_id)
    if not schedule:
        raise _not_found("Schedule")
    bookings = db.query(TransportBooking).filter(TransportBooking.schedule_id == schedule.id).count()
    if bookings:
        raise _bad_request({"message": "Cannot delete schedule with bookings", "bookings": bookings})
    db.delete(schedule)
    db.commit()
    return {"message": "Schedule deleted successfully"}


@app.get("/transport/admin/bookings", response_model=List[BookingRead])
@limiter.limit("30/minute")
def admin_list_bookings(
    request: Request,
    booking_date: Optional[date] = None,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    schedule_id: Optional[int] = None,
    current_user: User = Depends(manage_transport),
    db: Session = Depends(get_db),
) -> List[TransportBooking]:
    query = db.query(TransportBooking)
    if booking_date:
        query = query.filter(TransportBooking.booking_date == booking_date)
    if status_filter:
        query = query.filter(TransportBooking.status == status_filter)
    if schedule_id:
        query = query.filter(TransportBooking.schedule_id == schedule_id)
    return query.order_by(TransportBooking.booking_date.desc(), TransportBooking.id.desc()).all()

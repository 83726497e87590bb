# practice_scheduler/routers/providers.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services.availability_service import AvailabilityService
from ..services.exception_service import ExceptionService
from ..services.schedule_service import ScheduleService

router = APIRouter(
    prefix="/providers",
    tags=["Provider Schedule"],
    responses={404: {"description": "Not found"}},
)


@router.get("/{provider_id}/weekly-template", response_model=schemas.WeeklyTemplate)
def read_weekly_template(provider_id: int, db: Session = Depends(get_db)):
    """Seven day entries; `is_default` is true when the provider has not saved hours yet."""
    return ScheduleService(db).get_weekly_template(provider_id)


@router.put("/{provider_id}/weekly-template", response_model=schemas.WeeklyTemplate)
def replace_weekly_template(provider_id: int, template: schemas.WeeklyTemplate, db: Session = Depends(get_db)):
    return ScheduleService(db).save_weekly_template(provider_id, template)


@router.get("/{provider_id}/exceptions", response_model=List[schemas.ExceptionResponse])
def read_exceptions(
    provider_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db)
):
    return ExceptionService(db).get_exceptions(provider_id, start_date, end_date)


@router.post("/{provider_id}/exceptions", response_model=schemas.SavedExceptions, status_code=status.HTTP_201_CREATED)
def create_exception(provider_id: int, exception: schemas.ExceptionCreate, db: Session = Depends(get_db)):
    """
    Adds a schedule exception. Recurring input is expanded into one row per date
    and every id is returned.
    """
    return ExceptionService(db).save_exception(provider_id, exception)


@router.get("/{provider_id}/booking-policy", response_model=schemas.BookingPolicy)
def read_booking_policy(provider_id: int, db: Session = Depends(get_db)):
    return ScheduleService(db).get_booking_policy(provider_id)


@router.put("/{provider_id}/booking-policy", response_model=schemas.BookingPolicy)
def save_booking_policy(provider_id: int, policy: schemas.BookingPolicy, db: Session = Depends(get_db)):
    return ScheduleService(db).save_booking_policy(policy.model_copy(update={"provider_id": provider_id}))


@router.get("/{provider_id}/available-slots", response_model=schemas.AvailabilityResult)
def read_available_slots(
    provider_id: int,
    start_date: date,
    end_date: date,
    duration: Optional[int] = Query(None, gt=0, description="Appointment length in minutes"),
    db: Session = Depends(get_db)
):
    return AvailabilityService(db).compute_availability(provider_id, start_date, end_date, duration)

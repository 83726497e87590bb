# practice_scheduler/routers/appointments.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import schemas
from ..config import get_settings
from ..database import get_db
from ..limiter import limiter
from ..services.booking_service import BookingService

router = APIRouter(
    tags=["Appointments"],
    responses={404: {"description": "Not found"}},
)


@router.post("/appointments", response_model=schemas.CreatedAppointment, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_settings().booking_rate_limit)
def create_appointment(request: Request, details: schemas.BookingDetails, db: Session = Depends(get_db)):
    """
    Books a slot. A 409 means someone else took it first: fetch availability again.
    """
    return BookingService(db).create_appointment(details)


@router.get("/appointments/{appointment_id}", response_model=schemas.AppointmentResponse)
def read_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return BookingService(db).get_appointment(appointment_id)


@router.post("/booking-leads", response_model=schemas.BookingLeadResponse, status_code=status.HTTP_201_CREATED)
def create_booking_lead(lead: schemas.BookingLeadCreate, db: Session = Depends(get_db)):
    return BookingService(db).create_booking_lead(lead)

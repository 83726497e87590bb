# practice_scheduler/crud.py - Repository functions over the schedule store
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, and_, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from datetime import datetime, date, time
from typing import Optional, List, Dict, Any, Iterable, Tuple
import logging

from . import models
from .errors import UpstreamStoreError, SlotNoLongerAvailable, ValidationError

logger = logging.getLogger(__name__)


# ==================== PROVIDER OPERATIONS ====================

def get_provider(db: Session, provider_id: int) -> Optional[models.Provider]:
    try:
        return db.query(models.Provider).filter(models.Provider.id == provider_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the provider.", e)


def get_bookable_providers(db: Session) -> List[models.Provider]:
    """Providers flagged as generally available to patients, in store order."""
    try:
        return db.query(models.Provider).filter(
            models.Provider.is_bookable == True,
            models.Provider.is_active == True
        ).order_by(models.Provider.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching bookable providers: {e}")
        raise UpstreamStoreError("A database error occurred while fetching providers.", e)


def get_in_network_providers(db: Session, payer_id: int) -> List[models.Provider]:
    try:
        return db.query(models.Provider).join(
            models.ProviderPayerNetwork,
            models.ProviderPayerNetwork.provider_id == models.Provider.id
        ).filter(
            models.ProviderPayerNetwork.payer_id == payer_id,
            models.Provider.is_bookable == True,
            models.Provider.is_active == True
        ).order_by(models.Provider.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching in-network providers for payer {payer_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching in-network providers.", e)


# ==================== WEEKLY TEMPLATE OPERATIONS ====================

def get_provider_schedule(db: Session, provider_id: int) -> Optional[models.ProviderSchedule]:
    try:
        return db.query(models.ProviderSchedule).filter(
            models.ProviderSchedule.provider_id == provider_id
        ).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching schedule header for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the weekly schedule.", e)


def get_availability_blocks(db: Session, provider_id: int) -> List[models.AvailabilityBlock]:
    try:
        return db.query(models.AvailabilityBlock).filter(
            models.AvailabilityBlock.provider_id == provider_id
        ).order_by(models.AvailabilityBlock.day_of_week, models.AvailabilityBlock.start_time).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching availability blocks for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the weekly schedule.", e)


def replace_availability_blocks(db: Session, provider_id: int, blocks: Iterable[Tuple[int, time, time]]) -> List[models.AvailabilityBlock]:
    """Delete every block for the provider and insert the new set in one transaction."""
    try:
        schedule = db.query(models.ProviderSchedule).filter(
            models.ProviderSchedule.provider_id == provider_id
        ).first()
        if not schedule:
            schedule = models.ProviderSchedule(provider_id=provider_id, schedule_name="Default Schedule", is_active=True)
            db.add(schedule)
        else:
            schedule.updated_at = func.now()

        deleted = db.query(models.AvailabilityBlock).filter(
            models.AvailabilityBlock.provider_id == provider_id
        ).delete(synchronize_session=False)

        new_blocks = [
            models.AvailabilityBlock(provider_id=provider_id, day_of_week=day, start_time=start, end_time=end)
            for day, start, end in blocks
        ]
        db.add_all(new_blocks)
        db.commit()
        logger.debug(f"[replace_availability_blocks] provider {provider_id}: removed {deleted}, inserted {len(new_blocks)}")
        return new_blocks
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[replace_availability_blocks] SQLAlchemyError for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while saving the weekly schedule.", e)


# ==================== EXCEPTION OPERATIONS ====================

def get_exceptions(db: Session, provider_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[models.AvailabilityException]:
    """Exceptions touching the date range (multi-day rows match on any covered date), ordered by date."""
    try:
        query = db.query(models.AvailabilityException).filter(
            models.AvailabilityException.provider_id == provider_id
        )
        if end_date:
            query = query.filter(models.AvailabilityException.exception_date <= end_date)
        if start_date:
            query = query.filter(or_(
                models.AvailabilityException.exception_date >= start_date,
                and_(
                    models.AvailabilityException.end_date.isnot(None),
                    models.AvailabilityException.end_date >= start_date
                )
            ))
        return query.order_by(models.AvailabilityException.exception_date).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching exceptions for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching schedule exceptions.", e)


def get_exception_dates(db: Session, provider_id: int, dates: Iterable[date]) -> List[date]:
    """Which of the given dates already carry an exception row."""
    dates = list(dates)
    if not dates:
        return []
    try:
        rows = db.query(models.AvailabilityException.exception_date).filter(
            models.AvailabilityException.provider_id == provider_id,
            models.AvailabilityException.exception_date.in_(dates)
        ).all()
        return sorted(row[0] for row in rows)
    except SQLAlchemyError as e:
        logger.error(f"Error checking exception dates for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while checking schedule exceptions.", e)


def insert_exceptions(db: Session, rows: List[Dict[str, Any]]) -> List[models.AvailabilityException]:
    """Insert all rows as one batch; any failure leaves nothing written."""
    try:
        db_rows = [models.AvailabilityException(**row) for row in rows]
        db.add_all(db_rows)
        db.commit()
        for row in db_rows:
            db.refresh(row)
        return db_rows
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Exception batch of {len(rows)} rows collided with an existing date: {e}")
        raise ValidationError(["An exception already exists on one of the requested dates."])
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error inserting {len(rows)} exception rows: {e}")
        raise UpstreamStoreError("A database error occurred while saving schedule exceptions.", e)


def get_exception(db: Session, exception_id: int) -> Optional[models.AvailabilityException]:
    try:
        return db.query(models.AvailabilityException).filter(models.AvailabilityException.id == exception_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching exception {exception_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the exception.", e)


def delete_exception(db: Session, exception_id: int) -> bool:
    try:
        db_exception = get_exception(db, exception_id)
        if not db_exception:
            return False
        db.delete(db_exception)
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting exception {exception_id}: {e}")
        raise UpstreamStoreError("A database error occurred while deleting the exception.", e)


# ==================== BOOKING SETTINGS OPERATIONS ====================

def get_booking_settings(db: Session, provider_id: int) -> Optional[models.ProviderBookingSettings]:
    try:
        return db.query(models.ProviderBookingSettings).filter(
            models.ProviderBookingSettings.provider_id == provider_id
        ).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching booking settings for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching booking settings.", e)


def upsert_booking_settings(db: Session, provider_id: int, values: Dict[str, Any]) -> models.ProviderBookingSettings:
    try:
        db_settings = db.query(models.ProviderBookingSettings).filter(
            models.ProviderBookingSettings.provider_id == provider_id
        ).first()
        if db_settings:
            for key, value in values.items():
                setattr(db_settings, key, value)
        else:
            db_settings = models.ProviderBookingSettings(provider_id=provider_id, **values)
            db.add(db_settings)
        db.commit()
        db.refresh(db_settings)
        return db_settings
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving booking settings for provider {provider_id}: {e}")
        raise UpstreamStoreError("A database error occurred while saving booking settings.", e)


# ==================== APPOINTMENT OPERATIONS ====================

def get_appointments_in_range(db: Session, provider_id: int, start_date: date, end_date: date) -> List[models.Appointment]:
    """Live appointments occupying the provider's calendar between the two dates inclusive."""
    try:
        range_start = datetime.combine(start_date, time.min)
        range_end = datetime.combine(end_date, time.max)
        return db.query(models.Appointment).filter(
            models.Appointment.scheduled_provider_id == provider_id,
            models.Appointment.start_time >= range_start,
            models.Appointment.start_time <= range_end,
            models.Appointment.status != models.AppointmentStatus.cancelled
        ).order_by(models.Appointment.start_time).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching appointments for provider {provider_id} between {start_date} and {end_date}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching appointments.", e)


def find_live_appointment(db: Session, provider_id: int, start_time: datetime) -> Optional[models.Appointment]:
    """A non-cancelled appointment already holding this start time on the clinician's calendar."""
    try:
        return db.query(models.Appointment).filter(
            models.Appointment.scheduled_provider_id == provider_id,
            models.Appointment.start_time == start_time,
            models.Appointment.status != models.AppointmentStatus.cancelled
        ).first()
    except SQLAlchemyError as e:
        logger.error(f"Error checking slot for provider {provider_id} at {start_time}: {e}")
        raise UpstreamStoreError("A database error occurred while checking the slot.", e)


def create_appointment(db: Session, values: Dict[str, Any]) -> models.Appointment:
    """Insert an appointment. A live booking at the same clinician/start time raises SlotNoLongerAvailable."""
    db_appointment = models.Appointment(**values)
    try:
        db.add(db_appointment)
        db.commit()
        db.refresh(db_appointment)
        logger.info(f"Successfully created appointment {db_appointment.id} for provider {db_appointment.scheduled_provider_id}")
        return db_appointment
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Booking collision for provider {values.get('scheduled_provider_id')} at {values.get('start_time')}: {e}")
        raise SlotNoLongerAvailable(values.get('scheduled_provider_id'), values.get('start_time'))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error during appointment creation: {e}")
        raise UpstreamStoreError("A database error occurred while creating the appointment.", e)


def set_confirmation_code(db: Session, appointment_id: int, confirmation_code: str) -> None:
    try:
        db.query(models.Appointment).filter(models.Appointment.id == appointment_id).update(
            {'confirmation_code': confirmation_code}
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving confirmation code for appointment {appointment_id}: {e}")
        raise UpstreamStoreError("A database error occurred while saving the confirmation code.", e)


def get_appointment(db: Session, appointment_id: int) -> Optional[models.Appointment]:
    try:
        return db.query(models.Appointment).options(
            joinedload(models.Appointment.provider),
            joinedload(models.Appointment.rendering_provider)
        ).filter(models.Appointment.id == appointment_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching appointment {appointment_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the appointment.", e)


# ==================== PAYER OPERATIONS ====================

def get_payer(db: Session, payer_id: int) -> Optional[models.Payer]:
    try:
        return db.query(models.Payer).filter(models.Payer.id == payer_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching payer {payer_id}: {e}")
        raise UpstreamStoreError("A database error occurred while fetching the payer.", e)


def search_payers(db: Session, search: Optional[str] = None, limit: int = 50) -> List[models.Payer]:
    try:
        query = db.query(models.Payer)
        if search:
            query = query.filter(models.Payer.name.ilike(f"%{search.strip()}%"))
        return query.limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Error searching payers for '{search}': {e}")
        raise UpstreamStoreError("A database error occurred while searching payers.", e)


# ==================== BOOKING LEAD OPERATIONS ====================

def create_booking_lead(db: Session, values: Dict[str, Any]) -> models.BookingLead:
    try:
        db_lead = models.BookingLead(**values)
        db.add(db_lead)
        db.commit()
        db.refresh(db_lead)
        return db_lead
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating booking lead: {e}")
        raise UpstreamStoreError("A database error occurred while saving the booking request.", e)

# practice_scheduler/services/booking_service.py
# Persists bookings with the billing / rendering provider pairing the payer requires.
import secrets
import string
from datetime import date
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..compliance_logger import compliance_logger
from ..config import SchedulingDefaults, get_scheduling_defaults
from ..errors import NotFoundError, SlotNoLongerAvailable, UpstreamStoreError, ValidationError
from ..schemas import AcceptanceStatus
from .availability_service import AvailabilityService
from .payer_service import classify_payer_acceptance
from .schedule_service import ScheduleService

logger = structlog.get_logger(__name__)

CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits


def generate_confirmation_code(length: int = 8) -> str:
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(length))


class BookingService:
    def __init__(
        self,
        db: Session,
        defaults: Optional[SchedulingDefaults] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.db = db
        self.defaults = defaults or get_scheduling_defaults()
        self.today = today or date.today

    def _get_provider(self, provider_id: int) -> models.Provider:
        provider = crud.get_provider(self.db, provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        return provider

    def _check_still_open(self, provider_id: int, details: schemas.BookingDetails) -> None:
        """Raises SlotNoLongerAvailable unless the start is among the date's open starts for this duration."""
        day = details.start_time.date()
        slots = AvailabilityService(self.db, self.defaults).get_available_slots(provider_id, day, day, details.duration_minutes)
        if details.start_time.time() not in {slot.start_time for slot in slots}:
            logger.info("booking.slot_closed", provider_id=provider_id, start_time=details.start_time.isoformat())
            raise SlotNoLongerAvailable(provider_id, details.start_time)

    def create_appointment(self, details: schemas.BookingDetails) -> schemas.CreatedAppointment:
        """
        Books `details.selected_provider_id` at `details.start_time`.

        When the payer requires an attending, the attending given as
        `billing_provider_id` becomes the billing provider and the selected
        clinician is recorded as the rendering provider. Otherwise the selected
        clinician bills and there is no rendering provider. The confirmation code
        is written after the appointment exists; if that write fails the
        appointment stands without a code.
        """
        selected = self._get_provider(details.selected_provider_id)

        requires_attending = False
        if details.payer_id is not None:
            payer = crud.get_payer(self.db, details.payer_id)
            if payer is None:
                raise NotFoundError("Payer", details.payer_id)
            acceptance = classify_payer_acceptance(payer, self.today())
            if acceptance.status != AcceptanceStatus.active:
                raise ValidationError([acceptance.message])
            requires_attending = bool(payer.requires_attending)

        if requires_attending:
            if details.billing_provider_id is None:
                raise ValidationError(["This insurance requires a supervising attending; billing_provider_id is required."])
            attending = self._get_provider(details.billing_provider_id)
            billing_provider, rendering_provider = attending, selected
        else:
            billing_provider, rendering_provider = selected, None

        if crud.find_live_appointment(self.db, selected.id, details.start_time) is not None:
            raise SlotNoLongerAvailable(selected.id, details.start_time)
        self._check_still_open(selected.id, details)

        policy = ScheduleService(self.db, self.defaults).get_booking_policy(selected.id)
        patient = details.patient
        values = {
            "provider_id": billing_provider.id,
            "rendering_provider_id": rendering_provider.id if rendering_provider else None,
            "scheduled_provider_id": selected.id,
            "payer_id": details.payer_id,
            "start_time": details.start_time,
            "end_time": details.end_time,
            "duration_minutes": details.duration_minutes,
            "appointment_type": details.appointment_type,
            "status": models.AppointmentStatus.confirmed if policy.auto_confirm_appointments else models.AppointmentStatus.scheduled,
            "patient_first_name": patient.first_name,
            "patient_last_name": patient.last_name,
            "patient_email": patient.email,
            "patient_phone": patient.phone,
            "patient_date_of_birth": patient.date_of_birth,
            "patient_preferred_name": patient.preferred_name,
            "insurance_info": details.insurance.model_dump(mode="json") if details.insurance else None,
            "requires_supervision": requires_attending,
            "billing_provider_npi": billing_provider.npi,
            "rendering_provider_npi": rendering_provider.npi if rendering_provider else None,
        }
        appointment = crud.create_appointment(self.db, values)
        logger.info(
            "booking.created",
            appointment_id=appointment.id,
            billing_provider_id=appointment.provider_id,
            rendering_provider_id=appointment.rendering_provider_id,
            payer_id=details.payer_id,
        )

        confirmation_code = generate_confirmation_code(self.defaults.confirmation_code_length)
        try:
            crud.set_confirmation_code(self.db, appointment.id, confirmation_code)
        except UpstreamStoreError as e:
            logger.error("booking.confirmation_code_failed", appointment_id=appointment.id, error=str(e))
            confirmation_code = None

        compliance_logger.log_event(
            self.db,
            action="BOOK_APPOINTMENT",
            category="APPOINTMENT",
            details=f"Booked appointment {appointment.id} with provider {selected.id} at {details.start_time:%Y-%m-%d %H:%M}",
            resource_type="Appointment",
            resource_id=appointment.id,
        )
        return schemas.CreatedAppointment(
            appointment_id=appointment.id,
            confirmation_code=confirmation_code,
            provider_id=billing_provider.id,
            rendering_provider_id=rendering_provider.id if rendering_provider else None,
            requires_supervision=requires_attending,
        )

    def get_appointment(self, appointment_id: int) -> schemas.AppointmentResponse:
        appointment = crud.get_appointment(self.db, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return schemas.AppointmentResponse.model_validate(appointment)

    def create_booking_lead(self, data: schemas.BookingLeadCreate) -> schemas.BookingLeadResponse:
        """Records a patient who asked for a payer we cannot bill yet."""
        payer = crud.get_payer(self.db, data.payer_id)
        if payer is None:
            raise NotFoundError("Payer", data.payer_id)

        patient = data.patient
        lead = crud.create_booking_lead(self.db, {
            "email": patient.email,
            "phone": patient.phone,
            "preferred_name": patient.preferred_name or f"{patient.first_name} {patient.last_name}",
            "requested_payer_id": payer.id,
            "requested_payer_name": payer.name,
            "reason": data.reason,
            "status": "new",
        })
        logger.info("booking.lead_created", lead_id=lead.id, payer_id=payer.id)
        compliance_logger.log_event(
            self.db,
            action="CREATE",
            category="BOOKING_LEAD",
            details=f"Booking lead {lead.id} for payer {payer.name}",
            resource_type="BookingLead",
            resource_id=lead.id,
        )
        return schemas.BookingLeadResponse.model_validate(lead)

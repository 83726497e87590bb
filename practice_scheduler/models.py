# practice_scheduler/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, Time, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Boolean, JSON, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import enum


class ProviderRole(str, enum.Enum):
    attending = "attending"
    resident = "resident"
    therapist = "therapist"
    other = "other"


class ExceptionType(str, enum.Enum):
    unavailable = "unavailable"
    custom_hours = "custom_hours"
    partial_block = "partial_block"
    vacation = "vacation"
    recurring_change = "recurring_change"

    @property
    def has_window(self) -> bool:
        """Types whose start/end window replaces the weekly template for the date."""
        return self in (ExceptionType.custom_hours, ExceptionType.partial_block)

    @property
    def closes_day(self) -> bool:
        """Types that leave the date, or every date of a multi-day row, with no hours."""
        return self in (ExceptionType.unavailable, ExceptionType.vacation)


class RecurrencePattern(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    BULK_ACTION = "BULK_ACTION"


class Provider(Base):
    """Clinician whose calendar patients can book"""
    __tablename__ = "providers"
    __table_args__ = (
        Index('idx_providers_bookable', 'is_bookable', 'is_active'),
    )

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    title = Column(String(20), nullable=True)  # MD, DO, PMHNP
    role = Column(SQLAlchemyEnum(ProviderRole, name='provider_role'), default=ProviderRole.attending, nullable=False)
    npi = Column(String(10), nullable=True)

    is_bookable = Column(Boolean, default=True)  # shown to patients at all
    accepts_new_patients = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    availability_blocks = relationship("AvailabilityBlock", back_populates="provider", cascade="all, delete-orphan")
    exceptions = relationship("AvailabilityException", back_populates="provider", cascade="all, delete-orphan")
    booking_settings = relationship("ProviderBookingSettings", back_populates="provider", uselist=False, cascade="all, delete-orphan")
    payer_networks = relationship("ProviderPayerNetwork", back_populates="provider", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"


class ProviderSchedule(Base):
    """Marks that a provider has saved a weekly template; without one the default hours apply"""
    __tablename__ = "provider_schedules"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, unique=True)
    schedule_name = Column(String(100), default="Default Schedule")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AvailabilityBlock(Base):
    """One recurring weekly window; a day may have several"""
    __tablename__ = "availability_blocks"
    __table_args__ = (
        Index('idx_blocks_provider_day', 'provider_id', 'day_of_week'),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    provider = relationship("Provider", back_populates="availability_blocks")


class AvailabilityException(Base):
    """Date-scoped override of the weekly template. Recurring series are stored one row per date."""
    __tablename__ = "availability_exceptions"
    __table_args__ = (
        Index('idx_exceptions_provider_date', 'provider_id', 'exception_date'),
        UniqueConstraint('provider_id', 'exception_date', name='uq_provider_exception_date'),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)

    exception_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # multi-day types such as vacation
    exception_type = Column(SQLAlchemyEnum(ExceptionType, name='exception_type'), default=ExceptionType.unavailable, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    note = Column(Text, nullable=True)

    # Authoring metadata copied onto every expanded row
    is_recurring = Column(Boolean, default=False)
    recurrence_pattern = Column(SQLAlchemyEnum(RecurrencePattern, name='recurrence_pattern'), nullable=True)
    recurrence_interval = Column(Integer, nullable=True)
    recurrence_count = Column(Integer, nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    recurrence_days = Column(JSON, nullable=True)  # weekly only, 0=Sunday

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    provider = relationship("Provider", back_populates="exceptions")


class ProviderBookingSettings(Base):
    """Per-provider booking policy; absence means defaults apply"""
    __tablename__ = "provider_booking_settings"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, unique=True)

    max_daily_appointments = Column(Integer, nullable=False, default=20)
    booking_buffer_minutes = Column(Integer, nullable=False, default=15)
    advance_booking_days = Column(Integer, nullable=False, default=90)
    minimum_notice_hours = Column(Integer, nullable=False, default=24)
    cancellation_notice_hours = Column(Integer, nullable=False, default=24)

    telehealth_enabled = Column(Boolean, default=True)
    in_person_enabled = Column(Boolean, default=True)
    emergency_slots_per_day = Column(Integer, default=2)
    emergency_slot_duration_minutes = Column(Integer, default=30)

    self_booking_enabled = Column(Boolean, default=True)
    third_party_booking_enabled = Column(Boolean, default=True)
    case_manager_booking_enabled = Column(Boolean, default=True)

    accepts_new_patients = Column(Boolean, default=True)
    new_patient_appointment_types = Column(JSON, nullable=True)
    allow_patient_cancellation = Column(Boolean, default=True)
    auto_confirm_appointments = Column(Boolean, default=False)
    require_insurance_verification = Column(Boolean, default=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider", back_populates="booking_settings")


class Payer(Base):
    """Insurance payer and our credentialing state with it"""
    __tablename__ = "payers"
    __table_args__ = (
        Index('idx_payers_name', 'name'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    payer_type = Column(String(50), nullable=True)  # Medicaid, Commercial, Medicare
    state = Column(String(2), nullable=True)

    credentialing_status = Column(String(50), nullable=True)
    effective_date = Column(Date, nullable=True)
    projected_effective_date = Column(Date, nullable=True)
    requires_attending = Column(Boolean, default=False)
    requires_individual_contract = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    provider_networks = relationship("ProviderPayerNetwork", back_populates="payer", cascade="all, delete-orphan")


class ProviderPayerNetwork(Base):
    """Which providers are in network for which payer"""
    __tablename__ = "provider_payer_networks"
    __table_args__ = (
        UniqueConstraint('provider_id', 'payer_id', name='uq_provider_payer'),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    payer_id = Column(Integer, ForeignKey("payers.id"), nullable=False)
    effective_date = Column(Date, nullable=True)

    provider = relationship("Provider", back_populates="payer_networks")
    payer = relationship("Payer", back_populates="provider_networks")


class Appointment(Base):
    """Booked visit with billing vs. rendering provider assignment"""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_scheduled_start', 'scheduled_provider_id', 'start_time'),
        Index('idx_appointments_status_date', 'status', 'start_time'),
        # One live booking per clinician per start time; cancelled rows free the slot
        Index(
            'uq_appointments_clinician_start',
            'scheduled_provider_id', 'start_time',
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Billing provider (attending when supervised)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    # Clinician who performs a supervised visit
    rendering_provider_id = Column(Integer, ForeignKey("providers.id"), nullable=True)
    # Clinician whose calendar the visit occupies
    scheduled_provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    payer_id = Column(Integer, ForeignKey("payers.id"), nullable=True)  # NULL = self-pay

    # Wall-clock local times
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    appointment_type = Column(String(50), default="initial_consultation")
    status = Column(SQLAlchemyEnum(AppointmentStatus, name='appointment_status'), default=AppointmentStatus.scheduled, nullable=False)

    # Patient information
    patient_first_name = Column(String(100), nullable=False)
    patient_last_name = Column(String(100), nullable=False)
    patient_email = Column(String(255), nullable=True)
    patient_phone = Column(String(20), nullable=True)
    patient_date_of_birth = Column(Date, nullable=True)
    patient_preferred_name = Column(String(100), nullable=True)
    insurance_info = Column(JSON, nullable=True)

    # Billing export metadata
    requires_supervision = Column(Boolean, default=False)
    billing_provider_npi = Column(String(10), nullable=True)
    rendering_provider_npi = Column(String(10), nullable=True)

    confirmation_code = Column(String(16), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    provider = relationship("Provider", foreign_keys=[provider_id])
    rendering_provider = relationship("Provider", foreign_keys=[rendering_provider_id])
    scheduled_provider = relationship("Provider", foreign_keys=[scheduled_provider_id])
    payer = relationship("Payer")


class BookingLead(Base):
    """Patient who asked to book with a payer we do not accept yet"""
    __tablename__ = "booking_leads"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    preferred_name = Column(String(200), nullable=True)
    requested_payer_id = Column(Integer, ForeignKey("payers.id"), nullable=True)
    requested_payer_name = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default="new")  # new, contacted, converted, closed

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditLog(Base):
    """Audit trail for every schedule and booking mutation"""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index('idx_audit_action_date', 'action', 'timestamp'),
        Index('idx_audit_resource', 'resource_type', 'resource_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String(100), nullable=True)
    action = Column(SQLAlchemyEnum(AuditAction, name='audit_action'), nullable=False)
    category = Column(String(50), nullable=False, default="GENERAL", index=True)
    severity = Column(String(20), default="INFO", index=True)  # INFO, WARN, ERROR
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)
    new_values = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

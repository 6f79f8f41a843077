from datetime import datetime, UTC

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.audit import AuditAction
from app.models.communication import CommunicationStatus, MessageType, Priority, RecipientType
from app.models.document import AccessLevel, DocumentCategory, DocumentStatus
from app.models.due import AssignmentType, DuePaymentStatus, RecurringPeriod
from app.models.election import ElectionStatus
from app.models.event import AttendanceStatus, EventStatus, EventType, RegistrationPaymentStatus
from app.models.notification import NotificationType
from app.models.payment import ApprovalStatus, PaymentMethod
from app.models.pharmacy import RegistrationStatus
from app.models.user import UserRole, UserStatus


def utcnow():
    """Return naive UTC time using the non-deprecated API."""
    return datetime.now(UTC).replace(tzinfo=None)


class JWT(Base):
    __tablename__ = "jwt"

    id = Column(Integer, primary_key=True)
    secret_key = Column(String(64), nullable=False)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(64), nullable=False)
    last_name = Column(String(64), nullable=False)
    email = Column(String(128), unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)
    pcn_license = Column(String(64), nullable=True)
    hashed_password = Column(String(128), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.member, index=True)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.pending, index=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    pharmacies = relationship("Pharmacy", back_populates="owner")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Pharmacy(Base):
    __tablename__ = "pharmacies"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False, index=True)
    registration_number = Column(String(64), unique=True, nullable=False)
    location = Column(String(128), nullable=True)
    address = Column(String(256), nullable=True)
    ward_area = Column(String(128), nullable=True)
    registration_status = Column(
        Enum(RegistrationStatus), nullable=False, default=RegistrationStatus.pending, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    superintendent_name = Column(String(128), nullable=True)
    director_name = Column(String(128), nullable=True)
    pcn_license = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="pharmacies")
    dues = relationship("Due", back_populates="pharmacy", cascade="all, delete-orphan")


class DueType(Base):
    __tablename__ = "due_types"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), unique=True, nullable=False)
    description = Column(String(512), nullable=True)
    default_amount = Column(Float, nullable=False, default=0)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_period = Column(Enum(RecurringPeriod), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    dues = relationship("Due", back_populates="due_type")


class Due(Base):
    __tablename__ = "dues"
    __table_args__ = (UniqueConstraint("pharmacy_id", "due_type_id", "year", name="uq_due_pharmacy_type_year"),)

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    due_type_id = Column(Integer, ForeignKey("due_types.id"), nullable=False, index=True)
    title = Column(String(128), nullable=False)
    description = Column(String(512), nullable=True)
    amount = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False, default=0)
    amount_paid = Column(Float, nullable=False, default=0)
    balance = Column(Float, nullable=False, default=0)
    due_date = Column(DateTime, nullable=False, index=True)
    payment_status = Column(
        Enum(DuePaymentStatus), nullable=False, default=DuePaymentStatus.pending, index=True
    )
    assignment_type = Column(Enum(AssignmentType), nullable=False, default=AssignmentType.individual)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime, default=utcnow)
    year = Column(Integer, nullable=False, index=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    next_due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    pharmacy = relationship("Pharmacy", back_populates="dues")
    due_type = relationship("DueType", back_populates="dues")
    penalties = relationship(
        "DuePenalty",
        back_populates="due",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DuePenalty.id",
    )
    payments = relationship("Payment", back_populates="due", cascade="all, delete-orphan")

    @property
    def pharmacy_name(self):
        return self.pharmacy.name if self.pharmacy else None

    @property
    def due_type_name(self):
        return self.due_type.name if self.due_type else None

    def recalculate(self, now: datetime = None):
        """Refresh totals and payment status from amount, penalties and amount paid."""
        now = now or utcnow()
        self.amount_paid = self.amount_paid or 0
        self.total_amount = (self.amount or 0) + sum(p.amount for p in self.penalties)
        self.balance = max(self.total_amount - self.amount_paid, 0)
        if self.amount_paid >= self.total_amount:
            self.payment_status = DuePaymentStatus.paid
        elif self.amount_paid > 0:
            self.payment_status = DuePaymentStatus.partially_paid
        elif self.due_date and self.due_date < now:
            self.payment_status = DuePaymentStatus.overdue
        else:
            self.payment_status = DuePaymentStatus.pending


class DuePenalty(Base):
    __tablename__ = "due_penalties"

    id = Column(Integer, primary_key=True)
    due_id = Column(Integer, ForeignKey("dues.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    reason = Column(String(256), nullable=False)
    added_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    added_at = Column(DateTime, default=utcnow)

    due = relationship("Due", back_populates="penalties")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    due_id = Column(Integer, ForeignKey("dues.id"), nullable=False, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_reference = Column(String(128), nullable=True)
    receipt_url = Column(String(512), nullable=True)
    approval_status = Column(
        Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.pending, index=True
    )
    submitted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submitted_at = Column(DateTime, default=utcnow)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(512), nullable=True)

    due = relationship("Due", back_populates="payments")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    title = Column(String(128), nullable=False)
    description = Column(Text, nullable=False)
    event_type = Column(Enum(EventType), nullable=False, default=EventType.other, index=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    location = Column(JSON, nullable=False, default=dict)
    organizer = Column(String(128), nullable=True)
    capacity = Column(Integer, nullable=True)
    requires_registration = Column(Boolean, nullable=False, default=False)
    registration_fee = Column(Float, nullable=False, default=0)
    registration_deadline = Column(DateTime, nullable=True)
    requires_payment = Column(Boolean, nullable=False, default=False)
    is_attendance_required = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(EventStatus), nullable=False, default=EventStatus.draft, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    registrations = relationship("EventRegistration", back_populates="event", cascade="all, delete-orphan")


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_registration"),)

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_status = Column(
        Enum(RegistrationPaymentStatus), nullable=False, default=RegistrationPaymentStatus.not_required
    )
    attendance_status = Column(
        Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.registered
    )
    payment_reference = Column(String(128), nullable=True)
    registered_at = Column(DateTime, default=utcnow)

    event = relationship("Event", back_populates="registrations")
    user = relationship("User")

    @property
    def user_name(self):
        return self.user.full_name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None


class MeetingPenaltyConfig(Base):
    __tablename__ = "meeting_penalty_configs"

    id = Column(Integer, primary_key=True)
    year = Column(Integer, unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    penalty_rules = Column(JSON, nullable=False, default=list)
    default_penalty = Column(JSON, nullable=False, default=dict)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Election(Base):
    __tablename__ = "elections"

    id = Column(Integer, primary_key=True)
    title = Column(String(128), nullable=False)
    description = Column(Text, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(Enum(ElectionStatus), nullable=False, default=ElectionStatus.upcoming, index=True)
    positions = Column(JSON, nullable=False, default=list)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    candidates = relationship("Candidate", back_populates="election", cascade="all, delete-orphan")
    votes = relationship("Vote", back_populates="election", cascade="all, delete-orphan")

    def derive_status(self, now: datetime = None) -> ElectionStatus:
        if self.status == ElectionStatus.cancelled:
            return ElectionStatus.cancelled
        now = now or utcnow()
        if self.start_date <= now <= self.end_date:
            return ElectionStatus.ongoing
        if self.end_date < now:
            return ElectionStatus.completed
        return ElectionStatus.upcoming


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (
        UniqueConstraint("election_id", "user_id", "position", name="uq_candidate_election_user_position"),
    )

    id = Column(Integer, primary_key=True)
    election_id = Column(Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(String(128), nullable=False)
    manifesto = Column(Text, nullable=True)
    photo_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    election = relationship("Election", back_populates="candidates")
    user = relationship("User")
    votes = relationship("Vote", back_populates="candidate", cascade="all, delete-orphan")

    @property
    def name(self):
        return self.user.full_name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("election_id", "voter_id", "position", name="uq_vote_voter_position"),)

    id = Column(Integer, primary_key=True)
    election_id = Column(Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    election = relationship("Election", back_populates="votes")
    candidate = relationship("Candidate", back_populates="votes")


class Communication(Base):
    __tablename__ = "communications"

    id = Column(Integer, primary_key=True)
    subject = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_type = Column(Enum(RecipientType), nullable=False)
    message_type = Column(Enum(MessageType), nullable=False, default=MessageType.direct)
    priority = Column(Enum(Priority), nullable=False, default=Priority.normal)
    status = Column(Enum(CommunicationStatus), nullable=False, default=CommunicationStatus.draft, index=True)
    sent_date = Column(DateTime, nullable=True)
    scheduled_for = Column(DateTime, nullable=True)
    attachment_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    sender = relationship("User")
    recipients = relationship(
        "CommunicationRecipient", back_populates="communication", cascade="all, delete-orphan"
    )

    @property
    def sender_name(self):
        return self.sender.full_name if self.sender else None


class CommunicationRecipient(Base):
    __tablename__ = "communication_recipients"
    __table_args__ = (UniqueConstraint("communication_id", "user_id", name="uq_communication_recipient"),)

    id = Column(Integer, primary_key=True)
    communication_id = Column(
        Integer, ForeignKey("communications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_status = Column(Boolean, nullable=False, default=False)
    read_time = Column(DateTime, nullable=True)

    communication = relationship("Communication", back_populates="recipients")


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(NotificationType), nullable=False, default=NotificationType.system)
    title = Column(String(200), nullable=False)
    message = Column(String(500), nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    is_displayed = Column(Boolean, nullable=False, default=False)
    displayed_at = Column(DateTime, nullable=True)
    priority = Column(Enum(Priority), nullable=False, default=Priority.normal)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)


class OrganizationDocument(Base):
    __tablename__ = "organization_documents"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    file_url = Column(String(512), nullable=False)
    file_name = Column(String(256), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    file_type = Column(String(128), nullable=True)
    category = Column(Enum(DocumentCategory), nullable=False, default=DocumentCategory.other, index=True)
    tags = Column(JSON, nullable=False, default=list)
    access_level = Column(Enum(AccessLevel), nullable=False, default=AccessLevel.members, index=True)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.active, index=True)
    version = Column(Integer, nullable=False, default=1)
    download_count = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    expiration_date = Column(DateTime, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    versions = relationship(
        "DocumentVersion",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.version.desc()",
    )


class DocumentVersion(Base):
    __tablename__ = "document_versions"

    id = Column(Integer, primary_key=True)
    document_id = Column(
        Integer, ForeignKey("organization_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version = Column(Integer, nullable=False)
    file_url = Column(String(512), nullable=False)
    file_name = Column(String(256), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    notes = Column(String(1000), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    document = relationship("OrganizationDocument", back_populates="versions")


class AuditTrail(Base):
    __tablename__ = "audit_trail"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(Enum(AuditAction), nullable=False, index=True)
    resource_type = Column(String(64), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Text, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base
from .clock import utcnow


class Role:
    CLIENT = "client"
    TECHNICIAN = "technician"
    ADMIN = "admin"
    ALL = (CLIENT, TECHNICIAN, ADMIN)


class ServiceRequestStatus:
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    ALL = (PENDING, SCHEDULED, COMPLETED, CANCELLED, EXPIRED)
    TERMINAL = (COMPLETED, CANCELLED, EXPIRED)


class ProposalStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ALL = (PENDING, ACCEPTED, REJECTED)


class Identity(Base):
    __tablename__ = "identities"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    status = Column(Boolean, default=True, nullable=False)  # active flag
    role = Column(String(20), default=Role.CLIENT, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    addresses = relationship("Address", back_populates="owner")


technician_specialties = Table(
    "technician_specialties",
    Base.metadata,
    Column("technician_id", Integer, ForeignKey("technicians.id", ondelete="CASCADE"), primary_key=True),
    Column("appliance_type_id", Integer, ForeignKey("appliance_types.id", ondelete="CASCADE"), primary_key=True),
)


class Client(Base):
    __tablename__ = "clients"
    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(Integer, ForeignKey("identities.id"), unique=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    national_id = Column(String(20), unique=True, nullable=False)
    birth_date = Column(Date)
    phone = Column(String(30))

    identity = relationship("Identity")


class Technician(Base):
    __tablename__ = "technicians"
    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(Integer, ForeignKey("identities.id"), unique=True, nullable=False)
    national_id = Column(String(100), nullable=False)
    birth_date = Column(Date)
    experience_years = Column(Integer, default=0, nullable=False)

    identity = relationship("Identity")
    specialties = relationship("ApplianceType", secondary=technician_specialties, back_populates="technicians")


class ApplianceType(Base):
    __tablename__ = "appliance_types"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)

    technicians = relationship("Technician", secondary=technician_specialties, back_populates="specialties")
    appliances = relationship("Appliance", back_populates="type")


class Appliance(Base):
    __tablename__ = "appliances"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(100))
    model = Column(String(100), nullable=False)
    type_id = Column(Integer, ForeignKey("appliance_types.id"))

    type = relationship("ApplianceType", back_populates="appliances")


class Address(Base):
    __tablename__ = "addresses"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True)
    street = Column(String(255), nullable=False)
    number = Column(String(50), nullable=False)
    apartment = Column(String(50))
    neighborhood = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    additional_info = Column(Text)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("Identity", back_populates="addresses")

    @property
    def full_address(self) -> str:
        apartment = f" Apt. {self.apartment}" if self.apartment else ""
        return ", ".join([
            f"{self.street} {self.number}{apartment}",
            self.neighborhood,
            self.city,
            self.state,
            self.postal_code,
        ])


class ServiceRequest(Base):
    __tablename__ = "service_requests"
    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("identities.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("identities.id"), nullable=True, index=True)
    appliance_id = Column(Integer, ForeignKey("appliances.id"), nullable=False)
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    description = Column(Text, nullable=False)
    proposed_date_time = Column(DateTime, nullable=False)
    scheduled_at = Column(DateTime, nullable=True)
    status = Column(String(20), default=ServiceRequestStatus.PENDING, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    client = relationship("Identity", foreign_keys=[client_id])
    technician = relationship("Identity", foreign_keys=[technician_id])
    appliance = relationship("Appliance")
    address = relationship("Address")
    proposals = relationship(
        "AlternativeDateProposal",
        back_populates="service_request",
        order_by="AlternativeDateProposal.created_at",
    )


class AlternativeDateProposal(Base):
    __tablename__ = "alternative_date_proposals"
    id = Column(Integer, primary_key=True, index=True)
    service_request_id = Column(Integer, ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("identities.id"), nullable=False, index=True)
    proposed_date_time = Column(DateTime, nullable=False)
    status = Column(String(20), default=ProposalStatus.PENDING, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    # Sequence number of this proposal for the (request, technician) pair
    proposal_count = Column(Integer, default=1, nullable=False)

    service_request = relationship("ServiceRequest", back_populates="proposals")
    technician = relationship("Identity")


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("identities.id"), nullable=False, index=True)
    message = Column(String(500), nullable=False)
    event_type = Column(String(50), nullable=True)
    service_request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("service_request_id", name="uq_ratings_service_request"),)
    id = Column(Integer, primary_key=True, index=True)
    rater_id = Column(Integer, ForeignKey("identities.id"), nullable=False)
    rated_id = Column(Integer, ForeignKey("identities.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    comment = Column(String(1000), nullable=True)
    service_request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    rater = relationship("Identity", foreign_keys=[rater_id])
    rated = relationship("Identity", foreign_keys=[rated_id])

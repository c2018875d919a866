"""Pydantic request/response schemas for the REST API."""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# ── Auth / identity ─────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class IdentityCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Literal["client", "technician"] = "client"


class AdminCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)


class IdentityUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class IdentityOut(BaseModel):
    id: int
    name: str
    email: str
    status: bool
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ── Profiles ────────────────────────────────────────────────────────────────

class ClientProfileCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    national_id: str = Field(min_length=1, max_length=20)
    birth_date: Optional[date] = None
    phone: Optional[str] = Field(default=None, max_length=30)


class ClientProfileOut(BaseModel):
    id: int
    identity_id: int
    full_name: str
    national_id: str
    birth_date: Optional[date]
    phone: Optional[str]

    class Config:
        from_attributes = True


class ApplianceTypeOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class TechnicianProfileCreate(BaseModel):
    national_id: str = Field(min_length=1, max_length=100)
    birth_date: Optional[date] = None
    experience_years: int = Field(default=0, ge=0)
    specialty_ids: List[int] = []


class TechnicianProfileUpdate(BaseModel):
    national_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    birth_date: Optional[date] = None
    experience_years: Optional[int] = Field(default=None, ge=0)
    specialty_ids: Optional[List[int]] = None


class TechnicianProfileOut(BaseModel):
    id: int
    identity_id: int
    national_id: str
    birth_date: Optional[date]
    experience_years: int
    specialties: List[ApplianceTypeOut] = []
    identity: Optional[IdentityOut] = None

    class Config:
        from_attributes = True


# ── Catalog ─────────────────────────────────────────────────────────────────

class ApplianceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    brand: Optional[str] = Field(default=None, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    type_id: Optional[int] = None


class ApplianceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    brand: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type_id: Optional[int] = None


class ApplianceOut(BaseModel):
    id: int
    name: str
    brand: Optional[str]
    model: str
    type_id: Optional[int]

    class Config:
        from_attributes = True


# ── Addresses ───────────────────────────────────────────────────────────────

class AddressCreate(BaseModel):
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    apartment: Optional[str] = None
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    additional_info: Optional[str] = None
    is_default: bool = False


class AddressUpdate(BaseModel):
    street: Optional[str] = None
    number: Optional[str] = None
    apartment: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    additional_info: Optional[str] = None


class AddressOut(BaseModel):
    id: int
    user_id: int
    street: str
    number: str
    apartment: Optional[str]
    neighborhood: str
    city: str
    state: str
    postal_code: str
    country: str
    additional_info: Optional[str]
    is_default: bool
    full_address: str

    class Config:
        from_attributes = True


# ── Service requests & proposals ────────────────────────────────────────────

class ServiceRequestCreate(BaseModel):
    appliance_id: int
    address_id: int
    description: str = Field(min_length=1)
    proposed_date_time: datetime

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Description cannot be blank")
        return v


class CancelServiceRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class ProposeAlternativeDate(BaseModel):
    alternative_date_time: datetime
    comment: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v


class ProposalOut(BaseModel):
    id: int
    service_request_id: int
    technician_id: int
    proposed_date_time: datetime
    status: str
    comment: Optional[str]
    created_at: datetime
    resolved_at: Optional[datetime]
    proposal_count: int

    class Config:
        from_attributes = True


class ServiceRequestOut(BaseModel):
    id: int
    client_id: int
    technician_id: Optional[int]
    appliance_id: int
    address_id: int
    description: str
    proposed_date_time: datetime
    scheduled_at: Optional[datetime]
    status: str
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    expired_at: Optional[datetime]
    cancellation_reason: Optional[str]
    appliance: Optional[ApplianceOut] = None
    address: Optional[AddressOut] = None
    proposals: List[ProposalOut] = []

    class Config:
        from_attributes = True


class AvailabilityOut(BaseModel):
    available: bool
    reason: Optional[str] = None
    conflicting_request_id: Optional[int] = None
    conflicting_scheduled_at: Optional[datetime] = None


# ── Notifications & ratings ─────────────────────────────────────────────────

class NotificationOut(BaseModel):
    id: int
    user_id: int
    message: str
    event_type: Optional[str]
    service_request_id: Optional[int]
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RatingCreate(BaseModel):
    service_request_id: int
    score: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class RatingOut(BaseModel):
    id: int
    rater_id: int
    rated_id: int
    score: int
    comment: Optional[str]
    service_request_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserRatingsOut(BaseModel):
    user_id: int
    average: Optional[float]
    count: int
    ratings: List[RatingOut]

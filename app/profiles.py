"""Client and technician profiles (1:1 extensions of an identity)."""

from datetime import date
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import ApplianceType, Client, Technician

logger = get_logger("profiles")


def _load_appliance_types(db: Session, type_ids: Iterable[int]) -> list[ApplianceType]:
    type_ids = set(type_ids)
    if not type_ids:
        return []
    types = db.query(ApplianceType).filter(ApplianceType.id.in_(type_ids)).all()
    missing = type_ids - {t.id for t in types}
    if missing:
        raise ValidationError(f"Unknown appliance type(s): {', '.join(str(i) for i in sorted(missing))}")
    return types


# ── Clients ─────────────────────────────────────────────────────────────────

def create_client_profile(db: Session, identity_id: int, full_name: str, national_id: str,
                          birth_date: Optional[date] = None, phone: Optional[str] = None) -> Client:
    if db.query(Client).filter(Client.identity_id == identity_id).first():
        raise ConflictError("Client profile already exists")
    if db.query(Client).filter(Client.national_id == national_id).first():
        raise ConflictError("This national ID is already registered")

    profile = Client(
        identity_id=identity_id,
        full_name=full_name,
        national_id=national_id,
        birth_date=birth_date,
        phone=phone,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info("Client profile created", extra={"user_id": identity_id})
    return profile


def get_client_profile(db: Session, identity_id: int) -> Client:
    profile = db.query(Client).filter(Client.identity_id == identity_id).first()
    if not profile:
        raise NotFoundError("Client profile not found")
    return profile


def get_client(db: Session, client_id: int) -> Client:
    profile = db.query(Client).filter(Client.id == client_id).first()
    if not profile:
        raise NotFoundError("Client not found")
    return profile


def list_clients(db: Session) -> list[Client]:
    return db.query(Client).order_by(Client.id).all()


# ── Technicians ─────────────────────────────────────────────────────────────

def create_technician_profile(db: Session, identity_id: int, national_id: str,
                              birth_date: Optional[date] = None, experience_years: int = 0,
                              specialty_ids: Iterable[int] = ()) -> Technician:
    if db.query(Technician).filter(Technician.identity_id == identity_id).first():
        raise ConflictError("Technician profile already exists")

    profile = Technician(
        identity_id=identity_id,
        national_id=national_id,
        birth_date=birth_date,
        experience_years=experience_years,
        specialties=_load_appliance_types(db, specialty_ids),
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(
        f"Technician profile created with {len(profile.specialties)} specialties",
        extra={"user_id": identity_id},
    )
    return profile


def get_technician_profile(db: Session, identity_id: int) -> Technician:
    profile = db.query(Technician).filter(Technician.identity_id == identity_id).first()
    if not profile:
        raise NotFoundError("Technician profile not found")
    return profile


def get_technician(db: Session, technician_id: int) -> Technician:
    profile = db.query(Technician).filter(Technician.id == technician_id).first()
    if not profile:
        raise NotFoundError("Technician not found")
    return profile


def list_technicians(db: Session) -> list[Technician]:
    return db.query(Technician).order_by(Technician.id).all()


def update_technician_profile(db: Session, identity_id: int, national_id: Optional[str] = None,
                              birth_date: Optional[date] = None, experience_years: Optional[int] = None,
                              specialty_ids: Optional[Iterable[int]] = None) -> Technician:
    """Update the caller's own profile; fields left as None are unchanged."""
    profile = get_technician_profile(db, identity_id)

    if national_id is not None:
        profile.national_id = national_id
    if birth_date is not None:
        profile.birth_date = birth_date
    if experience_years is not None:
        profile.experience_years = experience_years
    if specialty_ids is not None:
        profile.specialties = _load_appliance_types(db, specialty_ids)

    db.commit()
    db.refresh(profile)
    return profile


def add_specialty(db: Session, identity_id: int, appliance_type_id: int) -> Technician:
    profile = get_technician_profile(db, identity_id)
    appliance_type = db.query(ApplianceType).filter(ApplianceType.id == appliance_type_id).first()
    if not appliance_type:
        raise NotFoundError("Appliance type not found")
    if appliance_type in profile.specialties:
        raise ConflictError("Specialty already assigned")

    profile.specialties.append(appliance_type)
    db.commit()
    db.refresh(profile)
    return profile


def remove_specialty(db: Session, identity_id: int, appliance_type_id: int) -> Technician:
    profile = get_technician_profile(db, identity_id)
    match = next((t for t in profile.specialties if t.id == appliance_type_id), None)
    if match is None:
        raise NotFoundError("Specialty not assigned to this technician")

    profile.specialties.remove(match)
    db.commit()
    db.refresh(profile)
    return profile

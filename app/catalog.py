"""Appliance catalog and appliance types (reference data)."""

from typing import Optional

from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError, ValidationError
from .models import Appliance, ApplianceType, ServiceRequest


def list_appliance_types(db: Session) -> list[ApplianceType]:
    return db.query(ApplianceType).order_by(ApplianceType.name).all()


def get_appliance_type(db: Session, type_id: int) -> ApplianceType:
    appliance_type = db.query(ApplianceType).filter(ApplianceType.id == type_id).first()
    if not appliance_type:
        raise NotFoundError("Appliance type not found")
    return appliance_type


def list_appliances(db: Session) -> list[Appliance]:
    return db.query(Appliance).order_by(Appliance.name).all()


def get_appliance(db: Session, appliance_id: int) -> Appliance:
    appliance = db.query(Appliance).filter(Appliance.id == appliance_id).first()
    if not appliance:
        raise NotFoundError("Appliance not found")
    return appliance


def search_appliances(db: Session, name: str) -> list[Appliance]:
    """Case-insensitive substring match on the appliance name."""
    return (
        db.query(Appliance)
        .filter(Appliance.name.ilike(f"%{name.strip()}%"))
        .order_by(Appliance.name)
        .all()
    )


def _check_type(db: Session, type_id: Optional[int]) -> None:
    if type_id is not None and not db.query(ApplianceType).filter(ApplianceType.id == type_id).first():
        raise ValidationError(f"Unknown appliance type: {type_id}")


def create_appliance(db: Session, name: str, model: str, brand: Optional[str] = None,
                     type_id: Optional[int] = None) -> Appliance:
    _check_type(db, type_id)
    appliance = Appliance(name=name, model=model, brand=brand, type_id=type_id)
    db.add(appliance)
    db.commit()
    db.refresh(appliance)
    return appliance


def update_appliance(db: Session, appliance_id: int, **updates) -> Appliance:
    appliance = get_appliance(db, appliance_id)
    if "type_id" in updates:
        _check_type(db, updates["type_id"])
    for key, value in updates.items():
        if value is not None and hasattr(appliance, key):
            setattr(appliance, key, value)
    db.commit()
    db.refresh(appliance)
    return appliance


def delete_appliance(db: Session, appliance_id: int) -> None:
    appliance = get_appliance(db, appliance_id)
    if db.query(ServiceRequest).filter(ServiceRequest.appliance_id == appliance_id).first():
        raise ConflictError("Appliance is referenced by service requests and cannot be deleted")
    db.delete(appliance)
    db.commit()

"""
Client addresses.

An owner has at most one default (primary) address. The first address an
owner creates becomes the default; deleting the default promotes the oldest
remaining address.
"""

from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError
from .logging_config import get_logger
from .models import Address, ServiceRequest

logger = get_logger("addresses")


def _clear_default(db: Session, user_id: int) -> None:
    db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True)).update(
        {Address.is_default: False}, synchronize_session="fetch"
    )


def create_address(db: Session, user_id: int, is_default: bool = False, **fields) -> Address:
    has_addresses = db.query(Address).filter(Address.user_id == user_id).first() is not None
    make_default = is_default or not has_addresses
    if make_default:
        _clear_default(db, user_id)

    address = Address(user_id=user_id, is_default=make_default, **fields)
    db.add(address)
    db.commit()
    db.refresh(address)
    logger.info(f"Address {address.id} created (default={make_default})", extra={"user_id": user_id})
    return address


def list_addresses(db: Session, user_id: int) -> list[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.asc(), Address.id.asc())
        .all()
    )


def get_address(db: Session, address_id: int, user_id: int) -> Address:
    address = db.query(Address).filter(Address.id == address_id, Address.user_id == user_id).first()
    if not address:
        raise NotFoundError("Address not found")
    return address


def get_primary_address(db: Session, user_id: int) -> Address:
    address = db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True)).first()
    if not address:
        raise NotFoundError("No primary address configured")
    return address


def update_address(db: Session, address_id: int, user_id: int, **updates) -> Address:
    address = get_address(db, address_id, user_id)
    for key, value in updates.items():
        if value is not None and hasattr(address, key):
            setattr(address, key, value)
    db.commit()
    db.refresh(address)
    return address


def set_primary_address(db: Session, address_id: int, user_id: int) -> Address:
    address = get_address(db, address_id, user_id)
    _clear_default(db, user_id)
    address.is_default = True
    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, address_id: int, user_id: int) -> None:
    address = get_address(db, address_id, user_id)
    if db.query(ServiceRequest).filter(ServiceRequest.address_id == address_id).first():
        raise ConflictError("Address is referenced by service requests and cannot be deleted")
    was_default = address.is_default
    db.delete(address)
    db.flush()

    if was_default:
        successor = (
            db.query(Address)
            .filter(Address.user_id == user_id)
            .order_by(Address.created_at.asc(), Address.id.asc())
            .first()
        )
        if successor:
            successor.is_default = True
    db.commit()

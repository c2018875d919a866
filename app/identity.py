"""Identity accounts: registration, credentials and admin management."""

from typing import Optional

from sqlalchemy.orm import Session

from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import Identity, Role
from .security import create_access_token, hash_password, verify_password

logger = get_logger("identity")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def register(db: Session, name: str, email: str, password: str, role: str = Role.CLIENT) -> Identity:
    if role not in Role.ALL:
        raise ValidationError(f"Unknown role: {role}")

    email = _normalize_email(email)
    if db.query(Identity).filter(Identity.email == email).first():
        raise ConflictError("This email already exists")

    identity = Identity(name=name.strip(), email=email, password=hash_password(password), role=role)
    db.add(identity)
    db.commit()
    db.refresh(identity)
    logger.info(f"Registered {role} identity {identity.id}", extra={"user_id": identity.id})
    return identity


def authenticate(db: Session, email: str, password: str) -> Identity:
    identity = db.query(Identity).filter(Identity.email == _normalize_email(email)).first()
    # Same message for unknown email and wrong password
    if not identity or not verify_password(password, identity.password):
        raise AuthError("Invalid credentials")
    if not identity.status:
        raise AuthError("Your account has been deactivated. Please contact an administrator.")
    return identity


def issue_token(db: Session, email: str, password: str) -> str:
    identity = authenticate(db, email, password)
    logger.info("Login succeeded", extra={"user_id": identity.id})
    return create_access_token(identity)


def find_by_id(db: Session, identity_id: int) -> Identity:
    identity = db.query(Identity).filter(Identity.id == identity_id).first()
    if not identity:
        raise NotFoundError(f"User with id {identity_id} not found")
    return identity


def find_all(db: Session, role: Optional[str] = None) -> list[Identity]:
    query = db.query(Identity)
    if role:
        query = query.filter(Identity.role == role)
    return query.order_by(Identity.id).all()


def update_identity(db: Session, identity_id: int, name: Optional[str] = None,
                    email: Optional[str] = None, password: Optional[str] = None) -> Identity:
    identity = find_by_id(db, identity_id)

    if email is not None:
        email = _normalize_email(email)
        if email != identity.email:
            taken = db.query(Identity).filter(Identity.email == email, Identity.id != identity_id).first()
            if taken:
                raise ConflictError("This email already exists")
            identity.email = email
    if name is not None:
        identity.name = name.strip()
    if password is not None:
        identity.password = hash_password(password)

    db.commit()
    db.refresh(identity)
    return identity


def toggle_status(db: Session, identity_id: int) -> Identity:
    identity = find_by_id(db, identity_id)
    identity.status = not identity.status
    db.commit()
    db.refresh(identity)
    logger.info(
        f"Identity {identity_id} {'activated' if identity.status else 'deactivated'}",
        extra={"user_id": identity_id},
    )
    return identity


def change_password(db: Session, identity_id: int, current_password: str, new_password: str) -> None:
    identity = find_by_id(db, identity_id)
    if not verify_password(current_password, identity.password):
        raise ValidationError("The current password is not correct")
    identity.password = hash_password(new_password)
    db.commit()
    logger.info("Password changed", extra={"user_id": identity_id})

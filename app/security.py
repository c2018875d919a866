"""
Password hashing, JWT issuance/verification and the role guard used by routes.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .clock import utcnow
from .config import JWT_ALGORITHM, JWT_EXPIRES_MINUTES, JWT_SECRET
from .db import get_db
from .errors import AuthError
from .logging_config import get_logger
from .models import Identity

logger = get_logger("security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing header surfaces as our AuthError (401)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        # Malformed or unknown hash stored for this identity
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(identity: Identity, expires_minutes: int = JWT_EXPIRES_MINUTES) -> str:
    payload = {
        "sub": str(identity.id),
        "email": identity.email,
        "role": identity.role,
        "exp": utcnow() + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the token claims or raise AuthError."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise AuthError("Invalid or expired token") from e
    if not payload.get("sub"):
        raise AuthError("Invalid token")
    return payload


def resolve_token_user(db: Session, token: str) -> Identity:
    """Load the active identity a bearer token belongs to."""
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise AuthError("Invalid token") from e

    user = db.query(Identity).filter(Identity.id == user_id).first()
    if not user:
        raise AuthError("Invalid token")
    if not user.status:
        raise AuthError("Account is deactivated")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("Not authenticated")
    return resolve_token_user(db, credentials.credentials)


def require_roles(*roles: str):
    """Dependency factory: allow only the listed roles through."""

    def checker(user: Identity = Depends(get_current_user)) -> Identity:
        if user.role not in roles:
            logger.info(
                f"Role {user.role} denied; requires one of {', '.join(roles)}",
                extra={"user_id": user.id},
            )
            raise AuthError("Insufficient role for this operation")
        return user

    return checker

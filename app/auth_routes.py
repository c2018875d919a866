from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import identity as identity_service
from .db import get_db
from .logging_config import get_logger
from .models import Identity
from .schemas import LoginRequest, Token
from .security import get_current_user

logger = get_logger("auth")

router = APIRouter()


@router.post("/login", response_model=Token)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    return Token(access_token=identity_service.issue_token(db, body.email, body.password))


@router.post("/logout")
def logout(user: Identity = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    logger.info("Logout", extra={"user_id": user.id})
    return {"message": "Logged out"}

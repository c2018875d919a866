from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import identity as identity_service
from .db import get_db
from .models import Identity, Role
from .schemas import AdminCreate, ChangePasswordRequest, IdentityCreate, IdentityOut, IdentityUpdate
from .security import get_current_user, require_roles

router = APIRouter()


@router.post("/register", response_model=IdentityOut, status_code=status.HTTP_201_CREATED)
def register(body: IdentityCreate, db: Session = Depends(get_db)):
    return identity_service.register(db, body.name, body.email, body.password, body.role)


@router.post("/admins", response_model=IdentityOut, status_code=status.HTTP_201_CREATED)
def create_admin(body: AdminCreate, db: Session = Depends(get_db),
                 _: Identity = Depends(require_roles(Role.ADMIN))):
    return identity_service.register(db, body.name, body.email, body.password, Role.ADMIN)


@router.get("/me", response_model=IdentityOut)
def me(user: Identity = Depends(get_current_user)):
    return user


@router.post("/me/update", response_model=IdentityOut)
def update_me(body: IdentityUpdate, db: Session = Depends(get_db),
              user: Identity = Depends(get_current_user)):
    return identity_service.update_identity(db, user.id, body.name, body.email, body.password)


@router.post("/change-password")
def change_password(body: ChangePasswordRequest, db: Session = Depends(get_db),
                    user: Identity = Depends(get_current_user)):
    identity_service.change_password(db, user.id, body.current_password, body.new_password)
    return {"message": "Password updated"}


@router.get("", response_model=List[IdentityOut])
def list_identities(role: Optional[str] = None, db: Session = Depends(get_db),
                    _: Identity = Depends(require_roles(Role.ADMIN))):
    return identity_service.find_all(db, role)


@router.get("/{identity_id}", response_model=IdentityOut)
def get_identity(identity_id: int, db: Session = Depends(get_db),
                 _: Identity = Depends(require_roles(Role.ADMIN))):
    return identity_service.find_by_id(db, identity_id)


@router.post("/{identity_id}/toggle-status", response_model=IdentityOut)
def toggle_status(identity_id: int, db: Session = Depends(get_db),
                  _: Identity = Depends(require_roles(Role.ADMIN))):
    return identity_service.toggle_status(db, identity_id)

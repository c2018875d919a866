from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import profiles
from .db import get_db
from .models import Identity, Role
from .schemas import ClientProfileCreate, ClientProfileOut, TechnicianProfileCreate, TechnicianProfileOut, TechnicianProfileUpdate
from .security import get_current_user, require_roles

clients_router = APIRouter()
technicians_router = APIRouter()


# ── Clients ─────────────────────────────────────────────────────────────────

@clients_router.post("/profile", response_model=ClientProfileOut, status_code=status.HTTP_201_CREATED)
def create_client_profile(body: ClientProfileCreate, db: Session = Depends(get_db),
                          user: Identity = Depends(require_roles(Role.CLIENT))):
    return profiles.create_client_profile(db, user.id, body.full_name, body.national_id,
                                          body.birth_date, body.phone)


@clients_router.get("/me", response_model=ClientProfileOut)
def my_client_profile(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.CLIENT))):
    return profiles.get_client_profile(db, user.id)


@clients_router.get("", response_model=List[ClientProfileOut])
def list_clients(db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    return profiles.list_clients(db)


@clients_router.get("/{client_id}", response_model=ClientProfileOut)
def get_client(client_id: int, db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    return profiles.get_client(db, client_id)


# ── Technicians ─────────────────────────────────────────────────────────────

@technicians_router.post("/profile", response_model=TechnicianProfileOut, status_code=status.HTTP_201_CREATED)
def create_technician_profile(body: TechnicianProfileCreate, db: Session = Depends(get_db),
                              user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return profiles.create_technician_profile(db, user.id, body.national_id, body.birth_date,
                                              body.experience_years, body.specialty_ids)


@technicians_router.get("/me", response_model=TechnicianProfileOut)
def my_technician_profile(db: Session = Depends(get_db),
                          user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return profiles.get_technician_profile(db, user.id)


@technicians_router.put("/me", response_model=TechnicianProfileOut)
def update_my_technician_profile(body: TechnicianProfileUpdate, db: Session = Depends(get_db),
                                 user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return profiles.update_technician_profile(db, user.id, body.national_id, body.birth_date,
                                              body.experience_years, body.specialty_ids)


@technicians_router.post("/me/specialties/{type_id}", response_model=TechnicianProfileOut)
def add_specialty(type_id: int, db: Session = Depends(get_db),
                  user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return profiles.add_specialty(db, user.id, type_id)


@technicians_router.delete("/me/specialties/{type_id}", response_model=TechnicianProfileOut)
def remove_specialty(type_id: int, db: Session = Depends(get_db),
                     user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return profiles.remove_specialty(db, user.id, type_id)


@technicians_router.get("", response_model=List[TechnicianProfileOut])
def list_technicians(db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return profiles.list_technicians(db)


@technicians_router.get("/{technician_id}", response_model=TechnicianProfileOut)
def get_technician(technician_id: int, db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return profiles.get_technician(db, technician_id)

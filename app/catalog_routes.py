from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from . import catalog
from .db import get_db
from .models import Identity, Role
from .schemas import ApplianceCreate, ApplianceOut, ApplianceTypeOut, ApplianceUpdate
from .security import get_current_user, require_roles

appliance_types_router = APIRouter()
appliances_router = APIRouter()


@appliance_types_router.get("", response_model=List[ApplianceTypeOut])
def list_appliance_types(db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return catalog.list_appliance_types(db)


@appliance_types_router.get("/{type_id}", response_model=ApplianceTypeOut)
def get_appliance_type(type_id: int, db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return catalog.get_appliance_type(db, type_id)


@appliances_router.get("", response_model=List[ApplianceOut])
def list_appliances(db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return catalog.list_appliances(db)


@appliances_router.get("/search/{name}", response_model=List[ApplianceOut])
def search_appliances(name: str, db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return catalog.search_appliances(db, name)


@appliances_router.get("/{appliance_id}", response_model=ApplianceOut)
def get_appliance(appliance_id: int, db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    return catalog.get_appliance(db, appliance_id)


@appliances_router.post("", response_model=ApplianceOut, status_code=status.HTTP_201_CREATED)
def create_appliance(body: ApplianceCreate, db: Session = Depends(get_db),
                     _: Identity = Depends(require_roles(Role.ADMIN))):
    return catalog.create_appliance(db, body.name, body.model, body.brand, body.type_id)


@appliances_router.put("/{appliance_id}", response_model=ApplianceOut)
def update_appliance(appliance_id: int, body: ApplianceUpdate, db: Session = Depends(get_db),
                     _: Identity = Depends(require_roles(Role.ADMIN))):
    return catalog.update_appliance(db, appliance_id, **body.model_dump(exclude_unset=True))


@appliances_router.delete("/{appliance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appliance(appliance_id: int, db: Session = Depends(get_db),
                     _: Identity = Depends(require_roles(Role.ADMIN))):
    catalog.delete_appliance(db, appliance_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

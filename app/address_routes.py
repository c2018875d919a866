from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from . import addresses
from .db import get_db
from .models import Identity
from .schemas import AddressCreate, AddressOut, AddressUpdate
from .security import get_current_user

router = APIRouter()


@router.post("", response_model=AddressOut, status_code=status.HTTP_201_CREATED)
def create_address(body: AddressCreate, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return addresses.create_address(db, user.id, **body.model_dump())


@router.get("", response_model=List[AddressOut])
def list_addresses(db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return addresses.list_addresses(db, user.id)


@router.get("/primary", response_model=AddressOut)
def get_primary_address(db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return addresses.get_primary_address(db, user.id)


@router.get("/{address_id}", response_model=AddressOut)
def get_address(address_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return addresses.get_address(db, address_id, user.id)


@router.patch("/{address_id}", response_model=AddressOut)
def update_address(address_id: int, body: AddressUpdate, db: Session = Depends(get_db),
                   user: Identity = Depends(get_current_user)):
    return addresses.update_address(db, address_id, user.id, **body.model_dump(exclude_unset=True))


@router.post("/{address_id}/set-primary", response_model=AddressOut)
def set_primary_address(address_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return addresses.set_primary_address(db, address_id, user.id)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(address_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    addresses.delete_address(db, address_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

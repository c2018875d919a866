from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import ratings
from .db import get_db
from .models import Identity, Role
from .schemas import RatingCreate, RatingOut, UserRatingsOut
from .security import get_current_user, require_roles

router = APIRouter()


@router.post("", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def create_rating(body: RatingCreate, db: Session = Depends(get_db),
                  user: Identity = Depends(require_roles(Role.CLIENT, Role.TECHNICIAN))):
    return ratings.create_rating(db, user, body.service_request_id, body.score, body.comment)


@router.get("", response_model=List[RatingOut])
def list_ratings(db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    return ratings.list_ratings(db)


@router.get("/user/{user_id}", response_model=UserRatingsOut)
def ratings_for_user(user_id: int, db: Session = Depends(get_db), _: Identity = Depends(get_current_user)):
    received = ratings.list_ratings_for_user(db, user_id)
    return UserRatingsOut(
        user_id=user_id,
        average=ratings.average_for_user(db, user_id),
        count=len(received),
        ratings=[RatingOut.model_validate(r) for r in received],
    )

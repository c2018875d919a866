"""Post-service ratings. One immutable rating per completed service request."""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import Identity, Rating, ServiceRequest, ServiceRequestStatus

logger = get_logger("ratings")


def create_rating(db: Session, rater: Identity, service_request_id: int, score: int,
                  comment: Optional[str] = None) -> Rating:
    request = db.query(ServiceRequest).filter(ServiceRequest.id == service_request_id).first()
    if not request:
        raise NotFoundError(f"Service request {service_request_id} not found")

    if rater.id == request.client_id:
        rated_id = request.technician_id
    elif rater.id == request.technician_id:
        rated_id = request.client_id
    else:
        raise NotFoundError(f"Service request {service_request_id} not found")

    if request.status != ServiceRequestStatus.COMPLETED:
        raise ValidationError("Only completed services can be rated")
    if not 1 <= score <= 5:
        raise ValidationError("Score must be between 1 and 5")
    if db.query(Rating).filter(Rating.service_request_id == service_request_id).first():
        raise ConflictError("This service request has already been rated")

    rating = Rating(
        rater_id=rater.id,
        rated_id=rated_id,
        score=score,
        comment=comment,
        service_request_id=service_request_id,
    )
    db.add(rating)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent rating on the same request
        db.rollback()
        raise ConflictError("This service request has already been rated")
    db.refresh(rating)
    logger.info(f"Rated identity {rated_id} with {score}",
                extra={"user_id": rater.id, "request_id": service_request_id})
    return rating


def list_ratings(db: Session) -> list[Rating]:
    return db.query(Rating).order_by(Rating.created_at.desc(), Rating.id.desc()).all()


def list_ratings_for_user(db: Session, user_id: int) -> list[Rating]:
    return (
        db.query(Rating)
        .filter(Rating.rated_id == user_id)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
        .all()
    )


def average_for_user(db: Session, user_id: int) -> Optional[float]:
    """Mean score received, rounded to two decimals; None when unrated."""
    average = db.query(func.avg(Rating.score)).filter(Rating.rated_id == user_id).scalar()
    return round(float(average), 2) if average is not None else None

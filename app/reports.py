"""Read-only aggregates for the admin dashboard."""

from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from .clock import utcnow
from .models import (
    AlternativeDateProposal,
    Identity,
    ProposalStatus,
    Rating,
    Role,
    ServiceRequest,
    ServiceRequestStatus,
    Technician,
)


def identity_counts(db: Session) -> dict:
    rows = db.query(Identity.role, Identity.status, func.count(Identity.id)).group_by(
        Identity.role, Identity.status
    ).all()
    by_role = {role: 0 for role in Role.ALL}
    active = inactive = 0
    for role, status, count in rows:
        by_role[role] = by_role.get(role, 0) + count
        if status:
            active += count
        else:
            inactive += count
    return {"total": active + inactive, "active": active, "inactive": inactive, "by_role": by_role}


def request_counts_by_status(db: Session) -> dict:
    counts = {status: 0 for status in ServiceRequestStatus.ALL}
    rows = db.query(ServiceRequest.status, func.count(ServiceRequest.id)).group_by(ServiceRequest.status).all()
    for status, count in rows:
        counts[status] = count
    return counts


def proposal_outcomes(db: Session) -> dict:
    counts = {status: 0 for status in ProposalStatus.ALL}
    rows = (
        db.query(AlternativeDateProposal.status, func.count(AlternativeDateProposal.id))
        .group_by(AlternativeDateProposal.status)
        .all()
    )
    for status, count in rows:
        counts[status] = count
    return counts


def dashboard_stats(db: Session) -> dict:
    requests = request_counts_by_status(db)
    return {
        "identities": identity_counts(db),
        "service_requests": {"total": sum(requests.values()), "by_status": requests},
        "proposals": proposal_outcomes(db),
        "ratings": {
            "total": db.query(func.count(Rating.id)).scalar() or 0,
            "average": _round(db.query(func.avg(Rating.score)).scalar()),
        },
    }


def requests_per_day(db: Session, days: int = 30) -> list[dict]:
    """Requests created per calendar day (UTC) over the last `days` days, oldest first, zero-filled."""
    today = utcnow().date()
    first_day = today - timedelta(days=days - 1)
    created = (
        db.query(ServiceRequest.created_at)
        .filter(ServiceRequest.created_at >= datetime.combine(first_day, datetime.min.time()))
        .all()
    )
    # Bucket in Python: date() truncation differs between SQLite and PostgreSQL
    per_day = Counter(row.created_at.date() for row in created)
    return [
        {"date": (first_day + timedelta(days=offset)).isoformat(),
         "count": per_day.get(first_day + timedelta(days=offset), 0)}
        for offset in range(days)
    ]


def technician_performance(db: Session) -> list[dict]:
    completed = dict(
        db.query(ServiceRequest.technician_id, func.count(ServiceRequest.id))
        .filter(ServiceRequest.status == ServiceRequestStatus.COMPLETED)
        .group_by(ServiceRequest.technician_id)
        .all()
    )
    ratings = {
        rated_id: (avg, count)
        for rated_id, avg, count in db.query(Rating.rated_id, func.avg(Rating.score), func.count(Rating.id))
        .group_by(Rating.rated_id)
        .all()
    }

    results = []
    for technician in db.query(Technician).order_by(Technician.id).all():
        average, count = ratings.get(technician.identity_id, (None, 0))
        results.append({
            "technician_id": technician.identity_id,
            "name": technician.identity.name,
            "completed_jobs": completed.get(technician.identity_id, 0),
            "average_rating": _round(average),
            "rating_count": count,
        })
    results.sort(key=lambda r: (-r["completed_jobs"], r["technician_id"]))
    return results


def _round(value):
    return round(float(value), 2) if value is not None else None

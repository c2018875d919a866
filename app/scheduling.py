"""
Service request lifecycle.

Status graph:
    pending   -> scheduled | cancelled | expired
    scheduled -> completed | cancelled
    completed, cancelled, expired are terminal.

Every transition is a conditional UPDATE ... WHERE status = <expected>, so two
technicians racing to accept the same request cannot both win: the loser
updates zero rows and gets a ConflictError.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .clock import to_business_time, to_utc_naive, utcnow
from .config import REQUEST_TTL_HOURS, SCHEDULE_CONFLICT_WINDOW_HOURS, WORKING_HOURS_END, WORKING_HOURS_START
from .db import SessionLocal
from .errors import ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger, log_state_change
from .models import (
    Address,
    AlternativeDateProposal,
    Appliance,
    ApplianceType,
    Identity,
    ProposalStatus,
    Role,
    ServiceRequest,
    ServiceRequestStatus,
    Technician,
)
from .notifications import (
    EVENT_ACCEPTED,
    EVENT_CANCELLED,
    EVENT_COMPLETED,
    EVENT_EXPIRED,
    EVENT_NEW,
    EVENT_REMOVED,
    notify,
)

logger = get_logger("scheduling")


# ── Rules ───────────────────────────────────────────────────────────────────

def validate_future(when: datetime, now: Optional[datetime] = None, label: str = "date") -> None:
    now = now or utcnow()
    if when <= now:
        raise ValidationError(f"The {label} must be in the future")


def validate_working_hours(when: datetime, label: str = "date") -> None:
    """Working hours are [start, end) in the business timezone."""
    local = to_business_time(when)
    if local.hour < WORKING_HOURS_START or local.hour >= WORKING_HOURS_END:
        raise ValidationError(
            f"The {label} must be within working hours "
            f"({WORKING_HOURS_START:02d}:00-{WORKING_HOURS_END:02d}:00)"
        )


def find_schedule_conflict(db: Session, technician_id: int, when: datetime,
                           exclude_request_id: Optional[int] = None) -> Optional[ServiceRequest]:
    """The technician's scheduled request closest to `when` inside the conflict window, if any."""
    window = timedelta(hours=SCHEDULE_CONFLICT_WINDOW_HOURS)
    query = db.query(ServiceRequest).filter(
        ServiceRequest.technician_id == technician_id,
        ServiceRequest.status == ServiceRequestStatus.SCHEDULED,
        ServiceRequest.scheduled_at >= when - window,
        ServiceRequest.scheduled_at <= when + window,
    )
    if exclude_request_id is not None:
        query = query.filter(ServiceRequest.id != exclude_request_id)
    candidates = query.all()
    if not candidates:
        return None
    return min(candidates, key=lambda r: abs(r.scheduled_at - when))


def check_technician_availability(db: Session, technician_id: int, when: datetime) -> dict:
    when = to_utc_naive(when)
    conflict = find_schedule_conflict(db, technician_id, when)
    if conflict is None:
        return {"available": True, "reason": None, "conflicting_request_id": None,
                "conflicting_scheduled_at": None}
    return {
        "available": False,
        "reason": (
            f"Already scheduled at {conflict.scheduled_at.isoformat()} "
            f"(within {SCHEDULE_CONFLICT_WINDOW_HOURS}h)"
        ),
        "conflicting_request_id": conflict.id,
        "conflicting_scheduled_at": conflict.scheduled_at,
    }


def ensure_technician_free(db: Session, technician_id: int, when: datetime) -> None:
    conflict = find_schedule_conflict(db, technician_id, when)
    if conflict is not None:
        raise ConflictError(
            f"You already have a service scheduled at {conflict.scheduled_at.isoformat()}; "
            f"jobs must be at least {SCHEDULE_CONFLICT_WINDOW_HOURS} hours apart"
        )


def find_eligible_technicians(db: Session, appliance: Appliance, when: datetime) -> list[int]:
    """Identity ids of technicians specialised in the appliance's type and free at `when`."""
    if appliance.type_id is None:
        return []
    technicians = (
        db.query(Technician)
        .join(Technician.specialties)
        .filter(ApplianceType.id == appliance.type_id)
        .all()
    )
    return [
        t.identity_id for t in technicians
        if find_schedule_conflict(db, t.identity_id, when) is None
    ]


# ── Internals ───────────────────────────────────────────────────────────────

def _get_request(db: Session, request_id: int) -> ServiceRequest:
    request = db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()
    if not request:
        raise NotFoundError(f"Service request {request_id} not found")
    return request


def transition(db: Session, request: ServiceRequest, expected: str, new_status: str, **values) -> None:
    """Compare-and-set the status; ConflictError if someone else moved it first."""
    updated = (
        db.query(ServiceRequest)
        .filter(ServiceRequest.id == request.id, ServiceRequest.status == expected)
        .update({"status": new_status, **values}, synchronize_session=False)
    )
    if updated == 0:
        raise ConflictError(f"Service request {request.id} is no longer {expected}")
    db.refresh(request)
    log_state_change(request.id, expected, new_status,
                     technician_id=request.technician_id, client_id=request.client_id)


def supersede_pending_proposals(db: Session, request_id: int, now: datetime,
                                keep_id: Optional[int] = None) -> list[AlternativeDateProposal]:
    """Reject every still-pending proposal on the request (except `keep_id`)."""
    query = db.query(AlternativeDateProposal).filter(
        AlternativeDateProposal.service_request_id == request_id,
        AlternativeDateProposal.status == ProposalStatus.PENDING,
    )
    if keep_id is not None:
        query = query.filter(AlternativeDateProposal.id != keep_id)
    superseded = query.all()
    for proposal in superseded:
        proposal.status = ProposalStatus.REJECTED
        proposal.resolved_at = now
    db.flush()
    return superseded


def _expire(db: Session, request: ServiceRequest, now: datetime) -> None:
    transition(db, request, ServiceRequestStatus.PENDING, ServiceRequestStatus.EXPIRED, expired_at=now)
    supersede_pending_proposals(db, request.id, now)
    notify(db, [request.client_id], EVENT_EXPIRED,
           "Your service request expired without being accepted", service_request=request)


def expire_if_stale(db: Session, request: ServiceRequest, now: Optional[datetime] = None) -> bool:
    """Lazily expire a single pending request; commits when it does."""
    now = now or utcnow()
    if request.status != ServiceRequestStatus.PENDING or request.expires_at > now:
        return False
    try:
        _expire(db, request, now)
    except ConflictError:
        # Someone else moved it; caller re-checks the status
        db.rollback()
        db.refresh(request)
        return request.status == ServiceRequestStatus.EXPIRED
    db.commit()
    return True


# ── Operations ──────────────────────────────────────────────────────────────

def create_service_request(db: Session, client_id: int, appliance_id: int, address_id: int,
                           description: str, proposed_date_time: datetime) -> ServiceRequest:
    description = (description or "").strip()
    if not description:
        raise ValidationError("The description cannot be blank")

    now = utcnow()
    when = to_utc_naive(proposed_date_time)
    validate_future(when, now, "proposed date")
    validate_working_hours(when, "proposed date")

    address = db.query(Address).filter(Address.id == address_id, Address.user_id == client_id).first()
    if not address:
        raise ValidationError("The selected address is not valid or does not belong to you")
    appliance = db.query(Appliance).filter(Appliance.id == appliance_id).first()
    if not appliance:
        raise NotFoundError("Appliance not found")

    request = ServiceRequest(
        client_id=client_id,
        appliance_id=appliance.id,
        address_id=address.id,
        description=description,
        proposed_date_time=when,
        status=ServiceRequestStatus.PENDING,
        created_at=now,
        expires_at=now + timedelta(hours=REQUEST_TTL_HOURS),
    )
    db.add(request)
    db.flush()

    recipients = find_eligible_technicians(db, appliance, when)
    notify(db, recipients, EVENT_NEW, "New service request available", service_request=request)
    db.commit()
    db.refresh(request)

    logger.info(
        f"Service request {request.id} created for {when.isoformat()}, "
        f"{len(recipients)} technicians notified",
        extra={"user_id": client_id, "request_id": request.id, "event": "request_created"},
    )
    return request


def accept_directly(db: Session, request_id: int, technician_id: int) -> ServiceRequest:
    request = _get_request(db, request_id)
    if request.status != ServiceRequestStatus.PENDING:
        raise NotFoundError("Service request not found or no longer available")

    now = utcnow()
    if expire_if_stale(db, request, now):
        raise ValidationError("This service request has expired")

    ensure_technician_free(db, technician_id, request.proposed_date_time)

    transition(
        db, request, ServiceRequestStatus.PENDING, ServiceRequestStatus.SCHEDULED,
        technician_id=technician_id,
        scheduled_at=request.proposed_date_time,
        accepted_at=now,
    )
    superseded = supersede_pending_proposals(db, request.id, now)

    notify(db, [request.client_id], EVENT_ACCEPTED,
           "A technician accepted your service request", service_request=request)
    notify(db, {p.technician_id for p in superseded} - {technician_id}, EVENT_REMOVED,
           "The service request was taken by another technician", service_request=request)
    db.commit()
    db.refresh(request)
    return request


def complete_by_client(db: Session, request_id: int, client_id: int) -> ServiceRequest:
    request = _get_request(db, request_id)
    if request.client_id != client_id or request.status != ServiceRequestStatus.SCHEDULED:
        raise NotFoundError("Service request not found or not scheduled")

    transition(db, request, ServiceRequestStatus.SCHEDULED, ServiceRequestStatus.COMPLETED,
               completed_at=utcnow())
    notify(db, [request.technician_id], EVENT_COMPLETED,
           "The client marked the service as completed", service_request=request)
    db.commit()
    db.refresh(request)
    return request


def cancel(db: Session, request_id: int, actor: Identity, reason: str) -> ServiceRequest:
    request = _get_request(db, request_id)
    is_admin = actor.role == Role.ADMIN
    if not is_admin and request.client_id != actor.id:
        raise NotFoundError(f"Service request {request_id} not found")
    if request.status not in (ServiceRequestStatus.PENDING, ServiceRequestStatus.SCHEDULED):
        raise NotFoundError("Service request cannot be cancelled in its current status")

    now = utcnow()
    transition(db, request, request.status, ServiceRequestStatus.CANCELLED,
               cancelled_at=now, cancellation_reason=reason.strip())
    superseded = supersede_pending_proposals(db, request.id, now)

    recipients = {p.technician_id for p in superseded}
    recipients.add(request.technician_id)
    if is_admin:
        recipients.add(request.client_id)
    recipients.discard(actor.id)
    notify(db, recipients, EVENT_CANCELLED,
           f"Service request cancelled: {request.cancellation_reason}", service_request=request)
    db.commit()
    db.refresh(request)
    return request


def expire_stale(db: Session, now: Optional[datetime] = None) -> list[ServiceRequest]:
    now = now or utcnow()
    stale = (
        db.query(ServiceRequest)
        .filter(
            ServiceRequest.status == ServiceRequestStatus.PENDING,
            ServiceRequest.expires_at <= now,
        )
        .order_by(ServiceRequest.id)
        .all()
    )
    expired = []
    for request in stale:
        try:
            _expire(db, request, now)
        except ConflictError:
            logger.debug(f"Request {request.id} changed status before it could expire")
            continue
        expired.append(request)

    db.commit()
    if expired:
        logger.info(f"Expired {len(expired)} stale service requests", extra={"event": "expire_stale"})
    return expired


def run_expiry_sweep() -> int:
    """One sweep in its own session; used by the background task."""
    db = SessionLocal()
    try:
        return len(expire_stale(db))
    finally:
        db.close()


# ── Queries ─────────────────────────────────────────────────────────────────

def _visible_to(db: Session, request: ServiceRequest, viewer: Identity) -> bool:
    if viewer.role == Role.ADMIN:
        return True
    if viewer.role == Role.CLIENT:
        return request.client_id == viewer.id
    if request.technician_id == viewer.id or request.status == ServiceRequestStatus.PENDING:
        return True
    return db.query(AlternativeDateProposal).filter(
        AlternativeDateProposal.service_request_id == request.id,
        AlternativeDateProposal.technician_id == viewer.id,
    ).first() is not None


def visible_proposals(request: ServiceRequest, viewer: Identity) -> list[AlternativeDateProposal]:
    """A technician sees only their own counter-offers; clients and admins see all."""
    if viewer.role == Role.TECHNICIAN:
        return [p for p in request.proposals if p.technician_id == viewer.id]
    return list(request.proposals)


def get_service_request(db: Session, request_id: int, viewer: Identity) -> ServiceRequest:
    request = _get_request(db, request_id)
    if not _visible_to(db, request, viewer):
        raise NotFoundError(f"Service request {request_id} not found")
    return request


def list_for_client(db: Session, client_id: int) -> list[ServiceRequest]:
    return (
        db.query(ServiceRequest)
        .filter(ServiceRequest.client_id == client_id)
        .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
        .all()
    )


def list_for_technician(db: Session, technician_id: int) -> list[ServiceRequest]:
    return (
        db.query(ServiceRequest)
        .filter(ServiceRequest.technician_id == technician_id)
        .order_by(ServiceRequest.scheduled_at.asc(), ServiceRequest.id.asc())
        .all()
    )


def list_pending(db: Session) -> list[ServiceRequest]:
    expire_stale(db)
    return (
        db.query(ServiceRequest)
        .filter(ServiceRequest.status == ServiceRequestStatus.PENDING)
        .order_by(ServiceRequest.created_at.asc(), ServiceRequest.id.asc())
        .all()
    )


def list_all(db: Session, status: Optional[str] = None) -> list[ServiceRequest]:
    if status is not None and status not in ServiceRequestStatus.ALL:
        raise ValidationError(f"Unknown status: {status}")
    query = db.query(ServiceRequest)
    if status:
        query = query.filter(ServiceRequest.status == status)
    return query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()


def list_available_for_technician(db: Session, technician_id: int) -> list[dict]:
    """
    Pending requests matching the technician's specialties. Each entry is the
    request plus only this technician's own proposals, so technicians never
    see each other's counter-offers.
    """
    expire_stale(db)
    technician = db.query(Technician).filter(Technician.identity_id == technician_id).first()
    if technician is None or not technician.specialties:
        return []
    type_ids = [t.id for t in technician.specialties]

    requests = (
        db.query(ServiceRequest)
        .join(Appliance, ServiceRequest.appliance_id == Appliance.id)
        .filter(
            ServiceRequest.status == ServiceRequestStatus.PENDING,
            Appliance.type_id.in_(type_ids),
        )
        .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
        .all()
    )
    return [
        {"request": request, "proposals": [p for p in request.proposals if p.technician_id == technician_id]}
        for request in requests
    ]


def _in_range(query, column, start: Optional[datetime], end: Optional[datetime]):
    if start is not None:
        query = query.filter(column >= to_utc_naive(start))
    if end is not None:
        query = query.filter(column <= to_utc_naive(end))
    return query


def technician_calendar(db: Session, technician_id: int, start: Optional[datetime] = None,
                        end: Optional[datetime] = None) -> list[ServiceRequest]:
    query = db.query(ServiceRequest).filter(
        ServiceRequest.technician_id == technician_id,
        ServiceRequest.status.in_([ServiceRequestStatus.SCHEDULED, ServiceRequestStatus.COMPLETED]),
    )
    query = _in_range(query, ServiceRequest.scheduled_at, start, end)
    return query.order_by(ServiceRequest.scheduled_at.asc()).all()


def client_calendar(db: Session, client_id: int, start: Optional[datetime] = None,
                    end: Optional[datetime] = None) -> list[ServiceRequest]:
    query = db.query(ServiceRequest).filter(
        ServiceRequest.client_id == client_id,
        ServiceRequest.status.in_([ServiceRequestStatus.SCHEDULED, ServiceRequestStatus.COMPLETED]),
    )
    query = _in_range(query, ServiceRequest.scheduled_at, start, end)
    return query.order_by(ServiceRequest.scheduled_at.asc()).all()

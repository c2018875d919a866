"""
Alternative-date proposals: a technician's counter-offer on a pending request.

Rules for a new proposal from technician T on request R:
- R must still be pending and not past expires_at
- T has fewer than MAX_PROPOSALS_PER_TECHNICIAN pending/rejected proposals on R
- the time is in the future and inside working hours
- it is at least MIN_PROPOSAL_SPACING_MINUTES away from T's other proposals on R
- T has no scheduled job within the conflict window
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .clock import to_utc_naive, utcnow
from .config import MAX_PROPOSALS_PER_TECHNICIAN, MIN_PROPOSAL_SPACING_MINUTES
from .errors import NotFoundError, ValidationError
from .logging_config import get_logger
from .models import AlternativeDateProposal, Identity, ProposalStatus, Role, ServiceRequest, ServiceRequestStatus
from .notifications import EVENT_PROPOSAL, EVENT_PROPOSAL_ACCEPTED, EVENT_PROPOSAL_REJECTED, EVENT_REMOVED, notify
from .scheduling import (
    ensure_technician_free,
    expire_if_stale,
    get_service_request,
    supersede_pending_proposals,
    transition,
    validate_future,
    validate_working_hours,
)

logger = get_logger("proposals")


def _sibling_proposals(db: Session, request_id: int, technician_id: int) -> list[AlternativeDateProposal]:
    return (
        db.query(AlternativeDateProposal)
        .filter(
            AlternativeDateProposal.service_request_id == request_id,
            AlternativeDateProposal.technician_id == technician_id,
            AlternativeDateProposal.status.in_([ProposalStatus.PENDING, ProposalStatus.REJECTED]),
        )
        .order_by(AlternativeDateProposal.created_at.asc())
        .all()
    )


def propose_alternative_date(db: Session, request_id: int, technician_id: int,
                             new_date_time: datetime, comment: Optional[str] = None) -> AlternativeDateProposal:
    request = db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()
    if not request or request.status != ServiceRequestStatus.PENDING:
        raise NotFoundError("Service request not found or no longer available")

    now = utcnow()
    if expire_if_stale(db, request, now):
        raise ValidationError("This service request has expired")

    siblings = _sibling_proposals(db, request.id, technician_id)
    if len(siblings) >= MAX_PROPOSALS_PER_TECHNICIAN:
        raise ValidationError(
            f"You have reached the limit of {MAX_PROPOSALS_PER_TECHNICIAN} "
            "alternative date proposals for this request"
        )

    when = to_utc_naive(new_date_time)
    validate_working_hours(when, "alternative date")
    validate_future(when, now, "alternative date")

    spacing = timedelta(minutes=MIN_PROPOSAL_SPACING_MINUTES)
    for sibling in siblings:
        if abs(when - sibling.proposed_date_time) < spacing:
            raise ValidationError(
                f"The alternative date must be at least {MIN_PROPOSAL_SPACING_MINUTES} minutes "
                f"away from your proposal for {sibling.proposed_date_time.isoformat()}"
            )

    ensure_technician_free(db, technician_id, when)

    proposal = AlternativeDateProposal(
        service_request=request,
        technician_id=technician_id,
        proposed_date_time=when,
        status=ProposalStatus.PENDING,
        comment=comment,
        created_at=now,
        proposal_count=len(siblings) + 1,
    )
    db.add(proposal)
    db.flush()

    notify(db, [request.client_id], EVENT_PROPOSAL,
           "A technician proposed an alternative date for your service request",
           service_request=request, proposal=proposal)
    db.commit()
    db.refresh(proposal)

    logger.info(
        f"Proposal #{proposal.proposal_count} for {when.isoformat()}",
        extra={"user_id": technician_id, "request_id": request.id, "event": "proposal_created"},
    )
    return proposal


def _get_actionable_proposal(db: Session, proposal_id: int, client_id: int) -> AlternativeDateProposal:
    """A pending proposal on a pending request owned by the client."""
    proposal = (
        db.query(AlternativeDateProposal)
        .filter(
            AlternativeDateProposal.id == proposal_id,
            AlternativeDateProposal.status == ProposalStatus.PENDING,
        )
        .first()
    )
    if not proposal:
        raise NotFoundError("Proposal not found or already processed")
    request = proposal.service_request
    if request.client_id != client_id or request.status != ServiceRequestStatus.PENDING:
        raise NotFoundError("Proposal not found or already processed")
    return proposal


def _resolve(db: Session, proposal: AlternativeDateProposal, status: str, now: datetime) -> None:
    updated = (
        db.query(AlternativeDateProposal)
        .filter(
            AlternativeDateProposal.id == proposal.id,
            AlternativeDateProposal.status == ProposalStatus.PENDING,
        )
        .update({"status": status, "resolved_at": now}, synchronize_session=False)
    )
    if updated == 0:
        raise NotFoundError("Proposal not found or already processed")
    db.refresh(proposal)


def accept_alternative_date_proposal(db: Session, proposal_id: int, client_id: int) -> ServiceRequest:
    proposal = _get_actionable_proposal(db, proposal_id, client_id)
    request = proposal.service_request

    now = utcnow()
    if expire_if_stale(db, request, now):
        raise ValidationError("This service request has expired")

    ensure_technician_free(db, proposal.technician_id, proposal.proposed_date_time)

    transition(
        db, request, ServiceRequestStatus.PENDING, ServiceRequestStatus.SCHEDULED,
        technician_id=proposal.technician_id,
        scheduled_at=proposal.proposed_date_time,
        accepted_at=now,
    )
    _resolve(db, proposal, ProposalStatus.ACCEPTED, now)
    superseded = supersede_pending_proposals(db, request.id, now, keep_id=proposal.id)

    notify(db, [proposal.technician_id], EVENT_PROPOSAL_ACCEPTED,
           "The client accepted your proposed date", service_request=request, proposal=proposal)
    notify(db, {p.technician_id for p in superseded} - {proposal.technician_id}, EVENT_REMOVED,
           "The client scheduled this service with another technician", service_request=request)
    db.commit()
    db.refresh(request)
    return request


def reject_alternative_date_proposal(db: Session, proposal_id: int, client_id: int) -> AlternativeDateProposal:
    proposal = _get_actionable_proposal(db, proposal_id, client_id)
    _resolve(db, proposal, ProposalStatus.REJECTED, utcnow())

    notify(db, [proposal.technician_id], EVENT_PROPOSAL_REJECTED,
           "The client rejected your proposed date",
           service_request=proposal.service_request, proposal=proposal)
    db.commit()
    db.refresh(proposal)
    logger.info(f"Proposal {proposal.id} rejected", extra={"user_id": client_id,
                                                           "request_id": proposal.service_request_id})
    return proposal


def list_proposals_for_request(db: Session, request_id: int, viewer: Identity) -> list[AlternativeDateProposal]:
    """Clients and admins see every proposal; a technician sees only their own."""
    get_service_request(db, request_id, viewer)
    query = db.query(AlternativeDateProposal).filter(AlternativeDateProposal.service_request_id == request_id)
    if viewer.role == Role.TECHNICIAN:
        query = query.filter(AlternativeDateProposal.technician_id == viewer.id)
    return query.order_by(AlternativeDateProposal.created_at.asc(), AlternativeDateProposal.id.asc()).all()


def list_proposals_for_technician(db: Session, technician_id: int) -> list[AlternativeDateProposal]:
    return (
        db.query(AlternativeDateProposal)
        .filter(AlternativeDateProposal.technician_id == technician_id)
        .order_by(AlternativeDateProposal.created_at.desc(), AlternativeDateProposal.id.desc())
        .all()
    )

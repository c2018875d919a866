"""
REST endpoints for the service request workflow.

Role checks happen here; ownership and state rules live in scheduling/proposals.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import proposals, scheduling
from .db import get_db
from .models import Identity, Role, ServiceRequest
from .schemas import (
    AvailabilityOut,
    CancelServiceRequest,
    ProposalOut,
    ProposeAlternativeDate,
    ServiceRequestCreate,
    ServiceRequestOut,
)
from .security import get_current_user, require_roles

router = APIRouter()


def present_request(request: ServiceRequest, viewer: Identity) -> ServiceRequestOut:
    """Serialize a request with only the proposals this viewer may see."""
    out = ServiceRequestOut.model_validate(request)
    out.proposals = [ProposalOut.model_validate(p) for p in scheduling.visible_proposals(request, viewer)]
    return out


@router.post("", response_model=ServiceRequestOut, status_code=status.HTTP_201_CREATED)
def create_service_request(body: ServiceRequestCreate, db: Session = Depends(get_db),
                           user: Identity = Depends(require_roles(Role.CLIENT))):
    request = scheduling.create_service_request(
        db, user.id, body.appliance_id, body.address_id, body.description, body.proposed_date_time
    )
    return present_request(request, user)


@router.get("/my-requests", response_model=List[ServiceRequestOut])
def my_requests(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.CLIENT))):
    return [present_request(r, user) for r in scheduling.list_for_client(db, user.id)]


@router.get("/available-for-me", response_model=List[ServiceRequestOut])
def available_for_me(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    results = []
    for entry in scheduling.list_available_for_technician(db, user.id):
        out = ServiceRequestOut.model_validate(entry["request"])
        out.proposals = [ProposalOut.model_validate(p) for p in entry["proposals"]]
        results.append(out)
    return results


@router.get("/assigned", response_model=List[ServiceRequestOut])
def assigned_to_me(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return [present_request(r, user) for r in scheduling.list_for_technician(db, user.id)]


@router.get("/pending", response_model=List[ServiceRequestOut])
def pending_requests(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.ADMIN))):
    return [present_request(r, user) for r in scheduling.list_pending(db)]


@router.get("/all", response_model=List[ServiceRequestOut])
def all_requests(status_filter: Optional[str] = Query(default=None, alias="status"),
                 db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.ADMIN))):
    return [present_request(r, user) for r in scheduling.list_all(db, status_filter)]


@router.get("/calendar", response_model=List[ServiceRequestOut])
def calendar(start: Optional[datetime] = None, end: Optional[datetime] = None,
             db: Session = Depends(get_db),
             user: Identity = Depends(require_roles(Role.CLIENT, Role.TECHNICIAN))):
    if user.role == Role.TECHNICIAN:
        requests = scheduling.technician_calendar(db, user.id, start, end)
    else:
        requests = scheduling.client_calendar(db, user.id, start, end)
    return [present_request(r, user) for r in requests]


@router.get("/availability/check", response_model=AvailabilityOut)
def check_availability(date_time: datetime, db: Session = Depends(get_db),
                       user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return scheduling.check_technician_availability(db, user.id, date_time)


@router.post("/expire-stale")
def expire_stale(db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    expired = scheduling.expire_stale(db)
    return {"expired": len(expired), "ids": [r.id for r in expired]}


@router.get("/{request_id}", response_model=ServiceRequestOut)
def get_service_request(request_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return present_request(scheduling.get_service_request(db, request_id, user), user)


@router.post("/{request_id}/accept", response_model=ServiceRequestOut)
def accept(request_id: int, db: Session = Depends(get_db),
           user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return present_request(scheduling.accept_directly(db, request_id, user.id), user)


@router.post("/{request_id}/propose-alternative-date", response_model=ProposalOut,
             status_code=status.HTTP_201_CREATED)
def propose_alternative_date(request_id: int, body: ProposeAlternativeDate, db: Session = Depends(get_db),
                             user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return proposals.propose_alternative_date(db, request_id, user.id, body.alternative_date_time, body.comment)


@router.post("/{request_id}/complete", response_model=ServiceRequestOut)
def complete(request_id: int, db: Session = Depends(get_db),
             user: Identity = Depends(require_roles(Role.CLIENT))):
    return present_request(scheduling.complete_by_client(db, request_id, user.id), user)


@router.post("/{request_id}/cancel", response_model=ServiceRequestOut)
def cancel(request_id: int, body: CancelServiceRequest, db: Session = Depends(get_db),
           user: Identity = Depends(require_roles(Role.CLIENT, Role.ADMIN))):
    return present_request(scheduling.cancel(db, request_id, user, body.reason), user)


@router.get("/{request_id}/alternative-date-proposals", response_model=List[ProposalOut])
def request_proposals(request_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return proposals.list_proposals_for_request(db, request_id, user)

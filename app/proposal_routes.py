from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import proposals
from .db import get_db
from .models import Identity, Role
from .schemas import ProposalOut, ServiceRequestOut
from .security import require_roles
from .service_request_routes import present_request

router = APIRouter()


@router.get("/mine", response_model=List[ProposalOut])
def my_proposals(db: Session = Depends(get_db), user: Identity = Depends(require_roles(Role.TECHNICIAN))):
    return proposals.list_proposals_for_technician(db, user.id)


@router.post("/{proposal_id}/accept", response_model=ServiceRequestOut)
def accept_proposal(proposal_id: int, db: Session = Depends(get_db),
                    user: Identity = Depends(require_roles(Role.CLIENT))):
    return present_request(proposals.accept_alternative_date_proposal(db, proposal_id, user.id), user)


@router.post("/{proposal_id}/reject", response_model=ProposalOut)
def reject_proposal(proposal_id: int, db: Session = Depends(get_db),
                    user: Identity = Depends(require_roles(Role.CLIENT))):
    return proposals.reject_alternative_date_proposal(db, proposal_id, user.id)

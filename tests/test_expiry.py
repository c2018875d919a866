"""Tests for request expiry: bulk sweep and lazy expiry on access."""
from datetime import timedelta

import pytest

from app.clock import utcnow
from app.errors import ValidationError
from app.models import Notification, ProposalStatus, ServiceRequestStatus
from app.proposals import accept_alternative_date_proposal, propose_alternative_date
from app.scheduling import accept_directly, expire_stale, list_pending, run_expiry_sweep


def _make_stale(db, request):
    request.expires_at = utcnow() - timedelta(minutes=5)
    db.commit()


class TestExpireStale:
    def test_expires_past_due_pending(self, db, make_request, client_user):
        stale = make_request(10)
        fresh = make_request(15)
        _make_stale(db, stale)

        expired = expire_stale(db)

        assert [r.id for r in expired] == [stale.id]
        db.refresh(stale)
        db.refresh(fresh)
        assert stale.status == ServiceRequestStatus.EXPIRED
        assert stale.expired_at is not None
        assert fresh.status == ServiceRequestStatus.PENDING

        notes = db.query(Notification).filter(
            Notification.user_id == client_user.id, Notification.event_type == "expired"
        ).all()
        assert len(notes) == 1

    def test_scheduled_requests_untouched(self, db, pending_request, technician):
        accept_directly(db, pending_request.id, technician.id)
        _make_stale(db, pending_request)

        assert expire_stale(db) == []
        db.refresh(pending_request)
        assert pending_request.status == ServiceRequestStatus.SCHEDULED

    def test_rejects_open_proposals(self, db, pending_request, technician, tomorrow_at):
        proposal = propose_alternative_date(db, pending_request.id, technician.id, tomorrow_at(14))
        _make_stale(db, pending_request)

        expire_stale(db)

        db.refresh(proposal)
        assert proposal.status == ProposalStatus.REJECTED

    def test_idempotent(self, db, pending_request):
        _make_stale(db, pending_request)
        assert len(expire_stale(db)) == 1
        assert expire_stale(db) == []

    def test_background_sweep_uses_own_session(self, db, pending_request):
        _make_stale(db, pending_request)
        assert run_expiry_sweep() == 1


class TestLazyExpiry:
    def test_accept_on_stale_request(self, db, pending_request, technician):
        _make_stale(db, pending_request)

        with pytest.raises(ValidationError, match="expired"):
            accept_directly(db, pending_request.id, technician.id)

        db.refresh(pending_request)
        assert pending_request.status == ServiceRequestStatus.EXPIRED
        assert pending_request.technician_id is None

    def test_propose_on_stale_request(self, db, pending_request, technician, tomorrow_at):
        _make_stale(db, pending_request)

        with pytest.raises(ValidationError):
            propose_alternative_date(db, pending_request.id, technician.id, tomorrow_at(14))

        db.refresh(pending_request)
        assert pending_request.status == ServiceRequestStatus.EXPIRED

    def test_accept_proposal_on_stale_request(self, db, pending_request, technician, client_user, tomorrow_at):
        proposal = propose_alternative_date(db, pending_request.id, technician.id, tomorrow_at(14))
        _make_stale(db, pending_request)

        with pytest.raises(ValidationError, match="expired"):
            accept_alternative_date_proposal(db, proposal.id, client_user.id)

        db.refresh(pending_request)
        db.refresh(proposal)
        assert pending_request.status == ServiceRequestStatus.EXPIRED
        assert pending_request.scheduled_at is None
        assert proposal.status == ProposalStatus.REJECTED

    def test_pending_listing_expires_first(self, db, make_request):
        stale = make_request(10)
        fresh = make_request(15)
        _make_stale(db, stale)

        assert [r.id for r in list_pending(db)] == [fresh.id]

"""
Notification fan-out.

Every service-request state change produces, for each affected user:
1. a persisted Notification row, added to the caller's session so it commits
   (or rolls back) together with the transition itself, and
2. a WebSocket push to the user's live connections.

Pushes are queued on the session and only dispatched after it commits
(SQLAlchemy after_commit hook -> scheduled onto the server event loop), so a
slow socket never blocks the state-changing request and a rolled-back
transition never announces anything. Delivery is best-effort: a user with no
live connection just has the stored row, readable later through
find_all_for_user(). Nothing is retried.
"""

import asyncio
import threading
from collections import defaultdict
from concurrent.futures import Future
from typing import Iterable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session
from starlette.websockets import WebSocket

from .db import SessionLocal
from .errors import NotFoundError
from .logging_config import get_logger, log_notification
from .models import AlternativeDateProposal, Notification, ServiceRequest
from .schemas import ProposalOut, ServiceRequestOut

logger = get_logger("notifications")

# ── Event types pushed over the socket ──────────────────────────────────────
EVENT_NEW = "new"
EVENT_UPDATED = "updated"
EVENT_REMOVED = "removed"
EVENT_ACCEPTED = "accepted"
EVENT_PROPOSAL = "proposal"
EVENT_PROPOSAL_ACCEPTED = "proposal-accepted"
EVENT_PROPOSAL_REJECTED = "proposal-rejected"
EVENT_COMPLETED = "completed"
EVENT_CANCELLED = "cancelled"
EVENT_EXPIRED = "expired"

# Key under Session.info holding (user_id, event) pairs awaiting commit
_PENDING_PUSHES = "pending_pushes"


class ConnectionRegistry:
    """
    user_id -> set of live WebSocket handles.

    Mutated from the event loop (connect/disconnect) and read when pushes are
    dispatched from worker threads, hence the lock.
    """

    def __init__(self):
        self._connections: dict[int, set] = defaultdict(set)
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def unbind_loop(self):
        self._loop = None

    def connect(self, user_id: int, websocket: WebSocket):
        with self._lock:
            self._connections[user_id].add(websocket)
        logger.info("Socket connected", extra={"user_id": user_id})

    def disconnect(self, user_id: int, websocket: WebSocket):
        with self._lock:
            handles = self._connections.get(user_id)
            if handles is None:
                return
            handles.discard(websocket)
            if not handles:
                del self._connections[user_id]
        logger.info("Socket disconnected", extra={"user_id": user_id})

    def connection_count(self, user_id: Optional[int] = None) -> int:
        with self._lock:
            if user_id is not None:
                return len(self._connections.get(user_id, ()))
            return sum(len(handles) for handles in self._connections.values())

    async def push(self, user_id: int, payload: dict) -> int:
        """Send to every current handle of the user; returns how many succeeded."""
        with self._lock:
            handles = list(self._connections.get(user_id, ()))

        delivered = 0
        for websocket in handles:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                # Dead handle; the reader loop will also notice and clean up
                logger.warning(f"Push failed, dropping socket: {e}", extra={"user_id": user_id})
                self.disconnect(user_id, websocket)

        log_notification(user_id, payload.get("type", ""), delivered > 0, handles=len(handles))
        return delivered

    def dispatch(self, user_id: int, payload: dict) -> Optional[Future]:
        """Schedule a push on the server loop from any thread. Never raises."""
        loop = self._loop
        if loop is None or loop.is_closed():
            log_notification(user_id, payload.get("type", ""), False, reason="no event loop")
            return None
        try:
            future = asyncio.run_coroutine_threadsafe(self.push(user_id, payload), loop)
        except RuntimeError as e:
            logger.warning(f"Could not schedule push: {e}", extra={"user_id": user_id})
            return None
        future.add_done_callback(_report_push_failure)
        return future


def _report_push_failure(future: Future):
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Notification push crashed: {type(exc).__name__}: {exc}")


registry = ConnectionRegistry()


def build_event(event_type: str, message: str,
                service_request: Optional[ServiceRequest] = None,
                proposal: Optional[AlternativeDateProposal] = None) -> dict:
    payload = {"type": event_type, "message": message}
    if service_request is not None:
        # One payload goes to every recipient, so other technicians' counter-offers stay out
        payload["serviceRequest"] = ServiceRequestOut.model_validate(service_request).model_dump(
            mode="json", exclude={"proposals"}
        )
    if proposal is not None:
        payload["proposal"] = ProposalOut.model_validate(proposal).model_dump(mode="json")
    return payload


def notify(db: Session, user_ids: Iterable[Optional[int]], event_type: str, message: str,
           service_request: Optional[ServiceRequest] = None,
           proposal: Optional[AlternativeDateProposal] = None) -> list[Notification]:
    """
    Persist one Notification per user in the caller's session and queue the
    socket push until that session commits. The caller owns the commit.
    """
    recipients = sorted({uid for uid in user_ids if uid is not None})
    if not recipients:
        return []

    # Serialize now: after commit the ORM objects are expired
    payload = build_event(event_type, message, service_request, proposal)
    request_id = service_request.id if service_request is not None else None

    rows = []
    for user_id in recipients:
        row = Notification(
            user_id=user_id,
            message=message,
            event_type=event_type,
            service_request_id=request_id,
        )
        db.add(row)
        rows.append(row)

    db.info.setdefault(_PENDING_PUSHES, []).extend((user_id, payload) for user_id in recipients)
    return rows


@event.listens_for(SessionLocal, "after_commit")
def _dispatch_after_commit(session: Session):
    pending = session.info.pop(_PENDING_PUSHES, None)
    if not pending:
        return
    for user_id, payload in pending:
        registry.dispatch(user_id, payload)


@event.listens_for(SessionLocal, "after_soft_rollback")
def _discard_after_rollback(session: Session, previous_transaction):
    dropped = session.info.pop(_PENDING_PUSHES, None)
    if dropped:
        logger.debug(f"Discarded {len(dropped)} queued pushes after rollback")


# ── Notification inbox ──────────────────────────────────────────────────────

def find_all_for_user(db: Session, user_id: int, unread_only: bool = False) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .count()
    )


def mark_read(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated

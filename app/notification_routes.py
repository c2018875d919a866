"""
Notification inbox endpoints and the live WebSocket channel.

WS /ws?token=<jwt>
    Registers the socket under the token's user. The server first sends
    {"type": "connected", "userId": ...}, then pushes workflow events as they
    commit. A text frame "ping" is answered with {"type": "pong"}.
"""
from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from . import notifications
from .db import SessionLocal, get_db
from .errors import AuthError
from .logging_config import get_logger
from .models import Identity
from .notifications import registry
from .schemas import NotificationOut
from .security import get_current_user, resolve_token_user

logger = get_logger("ws")

router = APIRouter()
ws_router = APIRouter()


@router.get("", response_model=List[NotificationOut])
def list_notifications(unread_only: bool = False, db: Session = Depends(get_db),
                       user: Identity = Depends(get_current_user)):
    return notifications.find_all_for_user(db, user.id, unread_only)


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return {"count": notifications.unread_count(db, user.id)}


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return {"updated": notifications.mark_all_read(db, user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db), user: Identity = Depends(get_current_user)):
    return notifications.mark_read(db, notification_id, user.id)


@ws_router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str = ""):
    db = SessionLocal()
    try:
        user_id = resolve_token_user(db, token).id
    except AuthError as e:
        logger.info(f"WebSocket rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    registry.connect(user_id, websocket)
    try:
        await websocket.send_json({"type": "connected", "userId": user_id})
        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(user_id, websocket)

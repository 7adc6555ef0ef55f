from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.app_state import AppState, get_state
from app.db import get_db
from app.exceptions import ThreadAccessDeniedError
from app.models.thread import Thread
from app.services.event_publisher import EventPublisher
from app.services.thread_service import ThreadService


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """FastAPI dependency for the calling user's id (set by the gateway)."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency for the process state built in the lifespan."""
    state = getattr(request.app.state, "inbox", None)
    return state if state is not None else get_state()


def get_event_publisher(state: AppState = Depends(get_app_state)) -> EventPublisher:
    return state.publisher


def get_accessible_thread(
    thread_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Thread:
    """FastAPI dependency to get a thread the caller owns or participates in."""
    service = ThreadService(db)
    if service.get_thread(thread_id) is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    try:
        return service.ensure_access(user_id, thread_id)
    except ThreadAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e

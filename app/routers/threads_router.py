"""Threads API: list, messages, mark read, unread count, participants."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi_pagination import Page, Params, paginate
from sqlalchemy.orm import Session

from app.db import get_db
from app.exceptions import ThreadNotFoundError
from app.models.thread import Thread
from app.routers.utils.dependencies import get_accessible_thread, get_current_user_id
from app.schemas.thread import (
    MarkReadRequest,
    MessageRead,
    ParticipantAdd,
    ThreadListRow,
    ThreadRead,
)
from app.services.message_service import MessageService
from app.services.thread_service import ThreadService

threads_router = APIRouter(prefix="/threads", tags=["Thread"])


@threads_router.get("", response_model=Page[ThreadListRow])
def list_threads(
    params: Params = Depends(),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Page[ThreadListRow]:
    """List threads the caller owns or participates in, with unread counts."""
    messages = MessageService(db)
    rows = []
    for thread in ThreadService(db, message_service=messages).list_threads_for_user(
        user_id
    ):
        unread = messages.unread_count_for_thread(thread.id)
        rows.append(
            ThreadListRow(
                **ThreadRead.model_validate(thread).model_dump(),
                unread_count=unread,
                has_unread_messages=unread > 0,
            )
        )
    return paginate(rows, params)


@threads_router.get("/{thread_id}", response_model=ThreadRead)
def get_thread(thread: Thread = Depends(get_accessible_thread)) -> ThreadRead:
    return ThreadRead.model_validate(thread)


@threads_router.get("/{thread_id}/messages", response_model=Page[MessageRead])
def list_thread_messages(
    params: Params = Depends(),
    thread: Thread = Depends(get_accessible_thread),
    db: Session = Depends(get_db),
) -> Page[MessageRead]:
    """Messages of the thread, oldest first."""
    messages = ThreadService(db).list_messages(thread.id)
    return paginate([MessageRead.model_validate(m) for m in messages], params)


@threads_router.post("/{thread_id}/mark-read", response_model=dict[str, Any])
def mark_thread_read(
    body: MarkReadRequest | None = None,
    thread: Thread = Depends(get_accessible_thread),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Mark the given messages, or every unread message, as read."""
    message_ids = body.message_ids if body else None
    updated = MessageService(db).mark_read(thread.id, message_ids)
    return {"data": {"updated": updated}}


@threads_router.get("/{thread_id}/unread-count", response_model=dict[str, Any])
def thread_unread_count(
    thread: Thread = Depends(get_accessible_thread),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    count = MessageService(db).unread_count_for_thread(thread.id)
    return {"data": {"unread_count": count, "has_unread_messages": count > 0}}


@threads_router.post(
    "/{thread_id}/participants", response_model=ThreadRead, status_code=201
)
def add_thread_participant(
    body: ParticipantAdd,
    user_id: str = Depends(get_current_user_id),
    thread: Thread = Depends(get_accessible_thread),
    db: Session = Depends(get_db),
) -> ThreadRead:
    """Share the thread with another user. Only the owner may add participants."""
    if thread.owner_user_id != user_id:
        raise HTTPException(
            status_code=403, detail="Only the thread owner can add participants"
        )
    try:
        updated = ThreadService(db).add_participant(thread.id, body.user_id)
    except ThreadNotFoundError as e:
        raise HTTPException(status_code=404, detail="Thread not found") from e
    return ThreadRead.model_validate(updated)

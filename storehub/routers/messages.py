from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, has_access, require_role
from storehub.db import get_db
from storehub.models import MessageType
from storehub.schemas import MessageCreateRequest
from storehub.services.message_service import (
    get_message,
    inbox_for,
    mark_read,
    read_counts,
    read_times,
    send_message,
    sent_by,
    serialize_message,
    unread_count,
)

router = APIRouter(prefix='/api/messages', tags=['messages'])


@router.get('')
def messages_inbox(
    limit: int = 100,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    messages = inbox_for(db, principal.id, limit=min(max(limit, 1), 500))
    reads = read_times(db, principal.id, [message.id for message in messages])
    return {
        'messages': [serialize_message(message, read_at=reads.get(message.id)) for message in messages],
        'unread': unread_count(db, principal.id),
    }


@router.get('/sent')
def messages_sent(
    limit: int = 100,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    messages = sent_by(db, principal.id, limit=min(max(limit, 1), 500))
    counts = read_counts(db, [message.id for message in messages])
    return [
        {**serialize_message(message), 'read_count': counts.get(message.id, 0)}
        for message in messages
    ]


@router.post('', status_code=status.HTTP_201_CREATED)
def messages_send(
    payload: MessageCreateRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    if payload.type == MessageType.BROADCAST and not has_access(principal.role, Role.SHIFT_LEAD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Only shift leads can broadcast')
    message = send_message(
        db,
        sender_id=principal.id,
        content=payload.content,
        message_type=payload.type,
        recipient_id=payload.recipient_id,
    )
    db.commit()
    return serialize_message(message)


@router.post('/{message_id}/read')
def messages_mark_read(
    message_id: int,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    receipt = mark_read(db, message_id, reader_id=principal.id)
    if receipt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Message not found')
    db.commit()
    return serialize_message(get_message(db, message_id), read_at=receipt.read_at)

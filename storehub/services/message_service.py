from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from storehub.errors import InvalidInputError
from storehub.models import Employee, Message, MessageRead, MessageType

MAX_CONTENT_LENGTH = 1000


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_message_type(value: MessageType | str) -> MessageType:
    if isinstance(value, MessageType):
        return value
    try:
        return MessageType(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f'Unknown message type: {value!r}') from exc


def send_message(
    db: Session,
    *,
    sender_id: int,
    content: str,
    message_type: MessageType | str = MessageType.BROADCAST,
    recipient_id: int | None = None,
    now: datetime | None = None,
) -> Message:
    kind = parse_message_type(message_type)
    clean_content = (content or '').strip()
    if not clean_content:
        raise InvalidInputError('Message content is required')
    if len(clean_content) > MAX_CONTENT_LENGTH:
        raise InvalidInputError(f'Message cannot exceed {MAX_CONTENT_LENGTH} characters')

    if kind == MessageType.BROADCAST:
        if recipient_id is not None:
            raise InvalidInputError('Broadcast messages cannot have a recipient')
    else:
        if recipient_id is None:
            raise InvalidInputError('Direct messages need a recipient')
        recipient = db.get(Employee, recipient_id)
        if recipient is None or not recipient.active:
            raise InvalidInputError('Recipient not found')

    message = Message(
        type=kind,
        recipient_id=recipient_id,
        sender_id=sender_id,
        content=clean_content,
        sent_at=now or _now(),
    )
    db.add(message)
    db.flush()
    return message


def _inbox_filter(employee_id: int):
    return or_(Message.type == MessageType.BROADCAST, Message.recipient_id == employee_id)


def inbox_for(db: Session, employee_id: int, *, limit: int = 100) -> list[Message]:
    return db.execute(
        select(Message)
        .where(_inbox_filter(employee_id))
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .limit(limit)
    ).scalars().all()


def sent_by(db: Session, employee_id: int, *, limit: int = 100) -> list[Message]:
    return db.execute(
        select(Message)
        .where(Message.sender_id == employee_id)
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .limit(limit)
    ).scalars().all()


def unread_count(db: Session, employee_id: int) -> int:
    already_read = (
        select(MessageRead.id)
        .where(MessageRead.message_id == Message.id, MessageRead.employee_id == employee_id)
        .exists()
    )
    return db.execute(
        select(func.count(Message.id)).where(
            _inbox_filter(employee_id),
            Message.sender_id != employee_id,
            ~already_read,
        )
    ).scalar_one()


def get_message(db: Session, message_id: int) -> Message | None:
    return db.get(Message, message_id)


def mark_read(db: Session, message_id: int, *, reader_id: int, now: datetime | None = None) -> MessageRead | None:
    """Record that ``reader_id`` opened the message; the first read time is kept."""
    message = db.get(Message, message_id)
    if message is None:
        return None
    if message.type == MessageType.DIRECT and message.recipient_id != reader_id:
        return None
    receipt = db.execute(
        select(MessageRead).where(MessageRead.message_id == message_id, MessageRead.employee_id == reader_id)
    ).scalar_one_or_none()
    if receipt is None:
        receipt = MessageRead(message_id=message_id, employee_id=reader_id, read_at=now or _now())
        db.add(receipt)
        db.flush()
    return receipt


def read_times(db: Session, employee_id: int, message_ids: list[int]) -> dict[int, datetime]:
    if not message_ids:
        return {}
    rows = db.execute(
        select(MessageRead.message_id, MessageRead.read_at).where(
            MessageRead.employee_id == employee_id,
            MessageRead.message_id.in_(message_ids),
        )
    ).all()
    return {message_id: read_at for message_id, read_at in rows}


def read_counts(db: Session, message_ids: list[int]) -> dict[int, int]:
    if not message_ids:
        return {}
    rows = db.execute(
        select(MessageRead.message_id, func.count(MessageRead.id))
        .where(MessageRead.message_id.in_(message_ids))
        .group_by(MessageRead.message_id)
    ).all()
    return {message_id: count for message_id, count in rows}


def serialize_message(message: Message, *, read_at: datetime | None = None) -> dict:
    return {
        'id': message.id,
        'type': message.type.value,
        'recipient_id': message.recipient_id,
        'sender_id': message.sender_id,
        'content': message.content,
        'sent_at': message.sent_at,
        'read_at': read_at,
    }

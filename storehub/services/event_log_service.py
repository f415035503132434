from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from storehub.models import EventLog

DEFAULT_RETENTION = 1000


def log_event(
    db: Session,
    event_type: str,
    detail: dict | None = None,
    *,
    ts: datetime | None = None,
    retention: int = DEFAULT_RETENTION,
) -> EventLog:
    event = EventLog(type=event_type, detail=_jsonable(detail or {}))
    if ts is not None:
        event.ts = ts
    db.add(event)
    db.flush()
    _trim(db, retention)
    return event


def _jsonable(detail: dict) -> dict:
    return json.loads(json.dumps(detail, default=str))


def _trim(db: Session, retention: int) -> None:
    total = db.execute(select(func.count(EventLog.id))).scalar_one()
    if total <= retention:
        return
    keep_ids = select(EventLog.id).order_by(EventLog.ts.desc(), EventLog.id.desc()).limit(retention)
    db.execute(delete(EventLog).where(EventLog.id.not_in(keep_ids)).execution_options(synchronize_session=False))


def recent_events(db: Session, *, limit: int = 50, event_type: str | None = None) -> list[dict]:
    query = select(EventLog).order_by(EventLog.ts.desc(), EventLog.id.desc()).limit(limit)
    if event_type:
        query = query.where(EventLog.type == event_type)
    return [
        {
            'id': row.id,
            'type': row.type,
            'detail': row.detail,
            'ts': row.ts,
        }
        for row in db.execute(query).scalars().all()
    ]

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.errors import InvalidInputError
from storehub.models import InventoryItem
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event

COUNT_REASONS = ('delivery', 'shrinkage', 'adjustment', 'sale', 'count')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def list_items(db: Session) -> list[InventoryItem]:
    return db.execute(select(InventoryItem).order_by(InventoryItem.sku.asc())).scalars().all()


def low_stock_items(db: Session) -> list[InventoryItem]:
    return db.execute(
        select(InventoryItem)
        .where(InventoryItem.count <= InventoryItem.min_threshold)
        .order_by(InventoryItem.count.asc(), InventoryItem.sku.asc())
    ).scalars().all()


def create_item(db: Session, *, sku: str, name: str, count: int = 0, min_threshold: int = 5) -> InventoryItem:
    clean_sku = (sku or '').strip().upper()
    if not clean_sku:
        raise InvalidInputError('SKU is required')
    if not (name or '').strip():
        raise InvalidInputError('Item name is required')
    if count < 0 or min_threshold < 0:
        raise InvalidInputError('Counts cannot be negative')
    if db.execute(select(InventoryItem.id).where(InventoryItem.sku == clean_sku)).scalar_one_or_none():
        raise InvalidInputError('SKU already exists')

    item = InventoryItem(sku=clean_sku, name=name.strip(), count=count, min_threshold=min_threshold)
    db.add(item)
    db.flush()
    return item


def update_count(
    db: Session,
    item_id: int,
    *,
    count: int,
    reason: str = 'count',
    employee_id: int | None = None,
    now: datetime | None = None,
    event_retention: int = DEFAULT_RETENTION,
) -> InventoryItem | None:
    now = now or _now()
    if count < 0:
        raise InvalidInputError('Count cannot be negative')
    clean_reason = (reason or 'count').strip().lower()
    if clean_reason not in COUNT_REASONS:
        raise InvalidInputError(f'Reason must be one of: {", ".join(COUNT_REASONS)}')

    item = db.get(InventoryItem, item_id)
    if item is None:
        return None
    previous = item.count
    item.count = count
    item.last_count_ts = now
    db.flush()
    log_event(
        db,
        'inventory:updated',
        {
            'item_id': item.id,
            'sku': item.sku,
            'previous_count': previous,
            'new_count': count,
            'delta': count - previous,
            'reason': clean_reason,
            'employee_id': employee_id,
        },
        ts=now,
        retention=event_retention,
    )
    return item


def serialize_item(item: InventoryItem) -> dict:
    return {
        'id': item.id,
        'sku': item.sku,
        'name': item.name,
        'count': item.count,
        'min_threshold': item.min_threshold,
        'low_stock': item.count <= item.min_threshold,
        'last_count_ts': item.last_count_ts,
    }

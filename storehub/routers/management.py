from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, require_role
from storehub.config import Settings
from storehub.db import get_db
from storehub.dependencies import get_carton_ledger, get_settings
from storehub.schemas import InventoryCountRequest, InventoryItemCreateRequest
from storehub.services.carton_ledger_service import CartonLedger
from storehub.services.employee_service import active_check_ins
from storehub.services.event_log_service import recent_events
from storehub.services.inventory_service import create_item, list_items, low_stock_items, serialize_item, update_count
from storehub.services.performance_service import build_performance_summary
from storehub.services.task_service import all_pending, overdue
from storehub.services.temperature_service import equipment_status

router = APIRouter(prefix='/api', tags=['management'])


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@router.get('/events')
def events_index(
    limit: int = 50,
    event_type: str | None = None,
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    return recent_events(db, limit=min(max(limit, 1), 1000), event_type=event_type)


@router.get('/inventory')
def inventory_index(
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    return [serialize_item(item) for item in list_items(db)]


@router.post('/inventory', status_code=status.HTTP_201_CREATED)
def inventory_create(
    payload: InventoryItemCreateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    item = create_item(
        db,
        sku=payload.sku,
        name=payload.name,
        count=payload.count,
        min_threshold=payload.min_threshold,
    )
    db.commit()
    return serialize_item(item)


@router.patch('/inventory/{item_id}')
def inventory_update_count(
    item_id: int,
    payload: InventoryCountRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    item = update_count(
        db,
        item_id,
        count=payload.count,
        reason=payload.reason,
        employee_id=principal.id,
        event_retention=settings.event_log_retention,
    )
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Inventory item not found')
    db.commit()
    return serialize_item(item)


@router.get('/manager/dashboard')
def manager_dashboard(
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
    ledger: CartonLedger = Depends(get_carton_ledger),
):
    now = _now()
    temperature = equipment_status(db, now)
    return {
        'generated_at': now,
        'carton_total': ledger.total(),
        'pending_tasks': len(all_pending(db)),
        'overdue_tasks': len(overdue(db, now)),
        'active_check_ins': len(active_check_ins(db)),
        'low_stock_items': [serialize_item(item) for item in low_stock_items(db)],
        'temperature_readings_due': sum(1 for row in temperature if row['reading_due']),
        'temperature_alerts': sum(
            1
            for row in temperature
            if row['last_reading'] is not None and row['last_reading']['status'] != 'ok'
        ),
        'recent_events': recent_events(db, limit=10),
    }


@router.get('/manager/performance')
def manager_performance(
    lookback_days: int = 30,
    _: Principal = Depends(require_role(Role.MANAGER)),
    db: Session = Depends(get_db),
):
    summary = build_performance_summary(db, lookback_days=min(max(lookback_days, 1), 365))
    return [row.to_dict() for row in summary]

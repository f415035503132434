from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, has_access, require_role
from storehub.config import Settings
from storehub.db import get_db
from storehub.dependencies import get_settings
from storehub.schemas import EquipmentCreateRequest, EquipmentUpdateRequest, ReadingCreateRequest
from storehub.services.temperature_service import (
    create_equipment,
    equipment_status,
    list_equipment,
    list_readings,
    out_of_range_readings,
    record_reading,
    serialize_equipment,
    serialize_reading,
    update_equipment,
)

router = APIRouter(prefix='/api/temperature', tags=['temperature'])


@router.get('/equipment')
def equipment_index(
    include_inactive: bool = False,
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    return [serialize_equipment(item) for item in list_equipment(db, include_inactive=include_inactive)]


@router.post('/equipment', status_code=status.HTTP_201_CREATED)
def equipment_create(
    payload: EquipmentCreateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    equipment = create_equipment(
        db,
        name=payload.name,
        min_temp=payload.min_temp,
        max_temp=payload.max_temp,
        interval_hours=payload.interval_hours,
        active=payload.active,
    )
    db.commit()
    return serialize_equipment(equipment)


@router.patch('/equipment/{equipment_id}')
def equipment_update(
    equipment_id: int,
    payload: EquipmentUpdateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    equipment = update_equipment(db, equipment_id, **payload.model_dump(exclude_unset=True))
    if equipment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Equipment not found')
    db.commit()
    return serialize_equipment(equipment)


@router.get('/status')
def equipment_status_index(
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    return equipment_status(db)


@router.get('/readings')
def readings_index(
    equipment_id: int | None = None,
    limit: int = 100,
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    readings = list_readings(db, equipment_id=equipment_id, limit=min(max(limit, 1), 500))
    return [serialize_reading(reading) for reading in readings]


@router.get('/alerts')
def readings_alerts(
    limit: int = 50,
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    return [serialize_reading(reading) for reading in out_of_range_readings(db, limit=min(max(limit, 1), 500))]


@router.post('/readings', status_code=status.HTTP_201_CREATED)
def readings_create(
    payload: ReadingCreateRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    taken_by = payload.taken_by or principal.id
    if taken_by != principal.id and not has_access(principal.role, Role.SHIFT_LEAD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Cannot log readings for someone else')
    reading = record_reading(
        db,
        equipment_id=payload.equipment_id,
        value=payload.value,
        taken_by=taken_by,
        event_retention=settings.event_log_retention,
    )
    if reading is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Equipment not found')
    db.commit()
    return serialize_reading(reading)

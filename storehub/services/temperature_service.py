from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.errors import InvalidInputError
from storehub.models import Employee, ReadingStatus, TemperatureEquipment, TemperatureReading
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event

# Fahrenheit.
TEMP_FLOOR = -50
TEMP_CEILING = 200
MAX_INTERVAL_HOURS = 168


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _validate_temp(value: int, label: str) -> None:
    if value < TEMP_FLOOR:
        raise InvalidInputError(f'{label} is too low')
    if value > TEMP_CEILING:
        raise InvalidInputError(f'{label} is too high')


def _validate_equipment(name: str, min_temp: int, max_temp: int, interval_hours: int) -> None:
    if not name.strip():
        raise InvalidInputError('Equipment name is required')
    _validate_temp(min_temp, 'Minimum temperature')
    _validate_temp(max_temp, 'Maximum temperature')
    if max_temp <= min_temp:
        raise InvalidInputError('Maximum temperature must be higher than minimum temperature')
    if interval_hours < 1 or interval_hours > MAX_INTERVAL_HOURS:
        raise InvalidInputError(f'Interval must be between 1 and {MAX_INTERVAL_HOURS} hours')


def classify_reading(equipment: TemperatureEquipment, value: int) -> ReadingStatus:
    if value < equipment.min_temp:
        return ReadingStatus.LOW
    if value > equipment.max_temp:
        return ReadingStatus.HIGH
    return ReadingStatus.OK


def create_equipment(
    db: Session,
    *,
    name: str,
    min_temp: int,
    max_temp: int,
    interval_hours: int = 14,
    active: bool = True,
) -> TemperatureEquipment:
    _validate_equipment(name, min_temp, max_temp, interval_hours)
    equipment = TemperatureEquipment(
        name=name.strip(),
        min_temp=min_temp,
        max_temp=max_temp,
        interval_hours=interval_hours,
        active=active,
    )
    db.add(equipment)
    db.flush()
    return equipment


def update_equipment(
    db: Session,
    equipment_id: int,
    *,
    name: str | None = None,
    min_temp: int | None = None,
    max_temp: int | None = None,
    interval_hours: int | None = None,
    active: bool | None = None,
) -> TemperatureEquipment | None:
    equipment = db.get(TemperatureEquipment, equipment_id)
    if equipment is None:
        return None
    merged_name = name if name is not None else equipment.name
    merged_min = min_temp if min_temp is not None else equipment.min_temp
    merged_max = max_temp if max_temp is not None else equipment.max_temp
    merged_interval = interval_hours if interval_hours is not None else equipment.interval_hours
    _validate_equipment(merged_name, merged_min, merged_max, merged_interval)

    equipment.name = merged_name.strip()
    equipment.min_temp = merged_min
    equipment.max_temp = merged_max
    equipment.interval_hours = merged_interval
    if active is not None:
        equipment.active = active
    db.flush()
    return equipment


def list_equipment(db: Session, *, include_inactive: bool = False) -> list[TemperatureEquipment]:
    query = select(TemperatureEquipment).order_by(TemperatureEquipment.name.asc(), TemperatureEquipment.id.asc())
    if not include_inactive:
        query = query.where(TemperatureEquipment.active.is_(True))
    return db.execute(query).scalars().all()


def record_reading(
    db: Session,
    *,
    equipment_id: int,
    value: int,
    taken_by: int,
    now: datetime | None = None,
    event_retention: int = DEFAULT_RETENTION,
) -> TemperatureReading | None:
    now = now or _now()
    equipment = db.get(TemperatureEquipment, equipment_id)
    if equipment is None or not equipment.active:
        return None
    if db.get(Employee, taken_by) is None:
        raise InvalidInputError('Employee not found')
    _validate_temp(value, 'Temperature')

    status = classify_reading(equipment, value)
    reading = TemperatureReading(
        equipment_id=equipment.id,
        value=value,
        status=status,
        taken_by=taken_by,
        taken_at=now,
    )
    db.add(reading)
    db.flush()
    if status != ReadingStatus.OK:
        log_event(
            db,
            'alert',
            {
                'kind': f'temperature_{status.value}',
                'equipment_id': equipment.id,
                'equipment_name': equipment.name,
                'value': value,
                'reading_id': reading.id,
            },
            ts=now,
            retention=event_retention,
        )
    return reading


def last_reading(db: Session, equipment_id: int) -> TemperatureReading | None:
    return db.execute(
        select(TemperatureReading)
        .where(TemperatureReading.equipment_id == equipment_id)
        .order_by(TemperatureReading.taken_at.desc(), TemperatureReading.id.desc())
    ).scalars().first()


def equipment_status(db: Session, now: datetime | None = None) -> list[dict]:
    now = now or _now()
    rows = []
    for equipment in list_equipment(db):
        reading = last_reading(db, equipment.id)
        reading_due = reading is None or now - reading.taken_at >= timedelta(hours=equipment.interval_hours)
        rows.append(
            {
                'equipment': serialize_equipment(equipment),
                'last_reading': serialize_reading(reading) if reading else None,
                'reading_due': reading_due,
                'next_due_at': None if reading is None else reading.taken_at + timedelta(hours=equipment.interval_hours),
            }
        )
    return rows


def out_of_range_readings(db: Session, *, limit: int = 50) -> list[TemperatureReading]:
    return db.execute(
        select(TemperatureReading)
        .where(TemperatureReading.status != ReadingStatus.OK)
        .order_by(TemperatureReading.taken_at.desc(), TemperatureReading.id.desc())
        .limit(limit)
    ).scalars().all()


def list_readings(db: Session, *, equipment_id: int | None = None, limit: int = 100) -> list[TemperatureReading]:
    query = (
        select(TemperatureReading)
        .order_by(TemperatureReading.taken_at.desc(), TemperatureReading.id.desc())
        .limit(limit)
    )
    if equipment_id is not None:
        query = query.where(TemperatureReading.equipment_id == equipment_id)
    return db.execute(query).scalars().all()


def serialize_equipment(equipment: TemperatureEquipment) -> dict:
    return {
        'id': equipment.id,
        'name': equipment.name,
        'min_temp': equipment.min_temp,
        'max_temp': equipment.max_temp,
        'interval_hours': equipment.interval_hours,
        'active': equipment.active,
    }


def serialize_reading(reading: TemperatureReading) -> dict:
    return {
        'id': reading.id,
        'equipment_id': reading.equipment_id,
        'value': reading.value,
        'status': reading.status.value,
        'taken_by': reading.taken_by,
        'taken_at': reading.taken_at,
    }

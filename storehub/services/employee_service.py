from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.auth import Role
from storehub.errors import InvalidInputError
from storehub.models import CheckInLog, Employee
from storehub.security.pins import hash_pin, validate_pin, verify_pin
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_role(value: Role | str) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f'Unknown role: {value!r}') from exc


def serialize_employee(employee: Employee) -> dict:
    return {
        'id': employee.id,
        'name': employee.name,
        'role': employee.role.value,
        'active': employee.active,
        'created_at': employee.created_at,
    }


def get_employee(db: Session, employee_id: int) -> Employee | None:
    return db.get(Employee, employee_id)


def list_employees(db: Session, *, include_inactive: bool = False) -> list[Employee]:
    query = select(Employee).order_by(Employee.name.asc(), Employee.id.asc())
    if not include_inactive:
        query = query.where(Employee.active.is_(True))
    return db.execute(query).scalars().all()


def authenticate_pin(db: Session, raw_pin: str) -> Employee | None:
    pin = (raw_pin or '').strip()
    if not pin:
        return None
    for employee in list_employees(db):
        if verify_pin(pin, employee.pin_hash):
            return employee
    return None


def _ensure_pin_unused(db: Session, pin: str, *, exclude_id: int | None = None) -> None:
    for employee in list_employees(db):
        if employee.id == exclude_id:
            continue
        if verify_pin(pin, employee.pin_hash):
            raise InvalidInputError('PIN is already in use')


def create_employee(db: Session, *, name: str, pin: str, role: Role | str = Role.EMPLOYEE) -> Employee:
    clean_name = name.strip()
    if not clean_name:
        raise InvalidInputError('Name is required')
    clean_pin = validate_pin(pin)
    _ensure_pin_unused(db, clean_pin)

    employee = Employee(name=clean_name, pin_hash=hash_pin(clean_pin), role=parse_role(role), active=True)
    db.add(employee)
    db.flush()
    return employee


def update_employee(
    db: Session,
    employee_id: int,
    *,
    name: str | None = None,
    pin: str | None = None,
    role: Role | str | None = None,
    active: bool | None = None,
) -> Employee | None:
    employee = get_employee(db, employee_id)
    if employee is None:
        return None
    if name is not None:
        clean_name = name.strip()
        if not clean_name:
            raise InvalidInputError('Name is required')
        employee.name = clean_name
    if pin is not None:
        clean_pin = validate_pin(pin)
        _ensure_pin_unused(db, clean_pin, exclude_id=employee.id)
        employee.pin_hash = hash_pin(clean_pin)
    if role is not None:
        employee.role = parse_role(role)
    if active is not None:
        employee.active = active
    db.flush()
    return employee


def _open_check_in(db: Session, employee_id: int) -> CheckInLog | None:
    return db.execute(
        select(CheckInLog)
        .where(CheckInLog.employee_id == employee_id, CheckInLog.ts_out.is_(None))
        .order_by(CheckInLog.ts_in.desc())
    ).scalars().first()


def check_in(
    db: Session,
    employee_id: int,
    *,
    device: str = 'dashboard',
    now: datetime | None = None,
    event_retention: int = DEFAULT_RETENTION,
) -> CheckInLog | None:
    """Open a check-in, reusing the employee's open one if present."""
    now = now or _now()
    employee = get_employee(db, employee_id)
    if employee is None or not employee.active:
        return None
    existing = _open_check_in(db, employee_id)
    if existing is not None:
        return existing

    log = CheckInLog(employee_id=employee_id, device=device or 'dashboard', ts_in=now)
    db.add(log)
    db.flush()
    log_event(
        db,
        'employee:checkin',
        {'employee_id': employee_id, 'device': log.device},
        ts=now,
        retention=event_retention,
    )
    return log


def check_out(
    db: Session,
    employee_id: int,
    *,
    now: datetime | None = None,
    event_retention: int = DEFAULT_RETENTION,
) -> CheckInLog | None:
    now = now or _now()
    log = _open_check_in(db, employee_id)
    if log is None:
        return None
    log.ts_out = now
    db.flush()
    log_event(db, 'employee:checkout', {'employee_id': employee_id}, ts=now, retention=event_retention)
    return log


def active_check_ins(db: Session) -> list[CheckInLog]:
    return db.execute(
        select(CheckInLog).where(CheckInLog.ts_out.is_(None)).order_by(CheckInLog.ts_in.asc())
    ).scalars().all()


def serialize_check_in(log: CheckInLog) -> dict:
    return {
        'id': log.id,
        'employee_id': log.employee_id,
        'ts_in': log.ts_in,
        'ts_out': log.ts_out,
        'device': log.device,
    }

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, has_access, require_role
from storehub.config import Settings
from storehub.db import get_db
from storehub.dependencies import get_settings
from storehub.schemas import CheckInRequest, EmployeeCreateRequest, EmployeeUpdateRequest
from storehub.services.employee_service import (
    active_check_ins,
    check_in,
    check_out,
    create_employee,
    list_employees,
    serialize_check_in,
    serialize_employee,
    update_employee,
)
from storehub.services.task_service import pending_for, serialize_task_log

router = APIRouter(prefix='/api', tags=['employees'])


@router.get('/employees')
def employees_index(
    include_inactive: bool = False,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    if include_inactive and not has_access(principal.role, Role.ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Insufficient role')
    return [serialize_employee(employee) for employee in list_employees(db, include_inactive=include_inactive)]


@router.post('/employees', status_code=status.HTTP_201_CREATED)
def employees_create(
    payload: EmployeeCreateRequest,
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if not has_access(principal.role, payload.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Cannot grant a role above your own')
    employee = create_employee(db, name=payload.name, pin=payload.pin, role=payload.role)
    db.commit()
    return serialize_employee(employee)


@router.patch('/employees/{employee_id}')
def employees_update(
    employee_id: int,
    payload: EmployeeUpdateRequest,
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if payload.role is not None and not has_access(principal.role, payload.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Cannot grant a role above your own')
    employee = update_employee(
        db,
        employee_id,
        name=payload.name,
        pin=payload.pin,
        role=payload.role,
        active=payload.active,
    )
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Employee not found')
    db.commit()
    return serialize_employee(employee)


@router.get('/employees/{employee_id}/tasks')
def employee_tasks(
    employee_id: int,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    if principal.id != employee_id and not has_access(principal.role, Role.SHIFT_LEAD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Insufficient role')
    return [serialize_task_log(task_log) for task_log in pending_for(db, employee_id)]


@router.post('/check-ins')
def check_in_create(
    payload: CheckInRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    log = check_in(db, principal.id, device=payload.device, event_retention=settings.event_log_retention)
    if log is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Employee not found')
    db.commit()
    return serialize_check_in(log)


@router.post('/check-outs')
def check_out_create(
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    log = check_out(db, principal.id, event_retention=settings.event_log_retention)
    if log is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Active check-in not found')
    db.commit()
    return serialize_check_in(log)


@router.get('/check-ins/active')
def check_ins_active(
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    return [serialize_check_in(log) for log in active_check_ins(db)]

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, has_access, require_role
from storehub.config import Settings
from storehub.db import get_db
from storehub.dependencies import get_settings, get_task_scheduler
from storehub.models import TaskStatus
from storehub.schemas import (
    EmployeeCallRequest,
    RegularTaskCreateRequest,
    RegularTaskUpdateRequest,
    SpecialTaskCreateRequest,
    TaskStatusRequest,
)
from storehub.services.employee_service import get_employee
from storehub.services.event_log_service import log_event
from storehub.services.task_scheduler import TaskScheduler
from storehub.services.task_service import (
    all_pending,
    create_regular_task,
    create_special_task,
    get_task_log,
    list_regular_tasks,
    list_task_logs,
    mark_status,
    overdue,
    pending_for,
    serialize_task_log,
    update_regular_task,
)

router = APIRouter(prefix='/api', tags=['tasks'])


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _serialize_regular(task) -> dict:
    return {
        'id': task.id,
        'title': task.title,
        'frequency_minutes': task.frequency_minutes,
        'active': task.active,
    }


@router.get('/tasks/regular')
def regular_tasks_index(
    include_inactive: bool = False,
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    return [_serialize_regular(task) for task in list_regular_tasks(db, include_inactive=include_inactive)]


@router.post('/tasks/regular', status_code=status.HTTP_201_CREATED)
def regular_tasks_create(
    payload: RegularTaskCreateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    task = create_regular_task(
        db,
        title=payload.title,
        frequency_minutes=payload.frequency_minutes,
        active=payload.active,
    )
    db.commit()
    return _serialize_regular(task)


@router.patch('/tasks/regular/{task_id}')
def regular_tasks_update(
    task_id: int,
    payload: RegularTaskUpdateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    task = update_regular_task(
        db,
        task_id,
        title=payload.title,
        frequency_minutes=payload.frequency_minutes,
        active=payload.active,
    )
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Task not found')
    db.commit()
    return _serialize_regular(task)


@router.post('/tasks/special', status_code=status.HTTP_201_CREATED)
def special_tasks_create(
    payload: SpecialTaskCreateRequest,
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _special, task_log = create_special_task(
        db,
        title=payload.title,
        assigned_to=payload.assigned_to,
        due_at=payload.due_at,
        default_due_minutes=settings.task_due_minutes,
        event_retention=settings.event_log_retention,
    )
    db.commit()
    return serialize_task_log(task_log)


@router.get('/task-logs')
def task_logs_index(
    status_filter: TaskStatus | None = None,
    assigned_to: int | None = None,
    limit: int = 200,
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    now = _now()
    logs = list_task_logs(db, status=status_filter, assigned_to=assigned_to, limit=min(max(limit, 1), 1000))
    return [serialize_task_log(log, now=now) for log in logs]


@router.get('/task-logs/pending')
def task_logs_pending(
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    now = _now()
    return [serialize_task_log(log, now=now) for log in all_pending(db)]


@router.get('/task-logs/mine')
def task_logs_mine(
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    now = _now()
    return [serialize_task_log(log, now=now) for log in pending_for(db, principal.id)]


@router.get('/task-logs/overdue')
def task_logs_overdue(
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    now = _now()
    return [serialize_task_log(log, now=now) for log in overdue(db, now)]


@router.patch('/task-logs/{task_log_id}/status')
def task_logs_update_status(
    task_log_id: int,
    payload: TaskStatusRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    existing = get_task_log(db, task_log_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Task not found')
    if existing.assigned_to != principal.id and not has_access(principal.role, Role.SHIFT_LEAD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Task is assigned to someone else')

    now = _now()
    task_log = mark_status(db, task_log_id, payload.status, now, event_retention=settings.event_log_retention)
    db.commit()
    return serialize_task_log(task_log, now=now)


@router.post('/employee-calls')
def employee_calls_create(
    payload: EmployeeCallRequest,
    principal: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    employee = get_employee(db, payload.employee_id)
    if employee is None or not employee.active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Employee not found')
    task_title = None
    if payload.task_log_id is not None:
        task_log = get_task_log(db, payload.task_log_id)
        if task_log is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Task not found')
        task_title = task_log.title_snapshot

    event = log_event(
        db,
        'employee:called',
        {
            'employee_id': employee.id,
            'employee_name': employee.name,
            'task_log_id': payload.task_log_id,
            'task_title': task_title,
            'called_by': principal.id,
            'note': payload.note,
        },
        retention=settings.event_log_retention,
    )
    db.commit()
    return {'success': True, 'event_id': event.id}


@router.get('/scheduler/status')
def scheduler_status(
    _: Principal = Depends(require_role(Role.ADMIN)),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
):
    return scheduler.status()


@router.post('/scheduler/run')
def scheduler_run(
    _: Principal = Depends(require_role(Role.ADMIN)),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
):
    return {'spawned': scheduler.run_once()}

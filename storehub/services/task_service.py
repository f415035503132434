from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.errors import InvalidInputError
from storehub.models import Employee, RegularTask, SpecialTask, TaskLog, TaskSourceType, TaskStatus
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_status(value: TaskStatus | str) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f'Unknown task status: {value!r}') from exc


def _pending_query():
    return (
        select(TaskLog)
        .where(TaskLog.status == TaskStatus.PENDING)
        .order_by(TaskLog.due_at.asc(), TaskLog.id.asc())
    )


def pending_for(db: Session, employee_id: int) -> list[TaskLog]:
    return db.execute(_pending_query().where(TaskLog.assigned_to == employee_id)).scalars().all()


def all_pending(db: Session) -> list[TaskLog]:
    return db.execute(_pending_query()).scalars().all()


def overdue(db: Session, now: datetime) -> list[TaskLog]:
    return db.execute(_pending_query().where(TaskLog.due_at < now)).scalars().all()


def get_task_log(db: Session, task_log_id: int) -> TaskLog | None:
    return db.get(TaskLog, task_log_id)


def mark_status(
    db: Session,
    task_log_id: int,
    new_status: TaskStatus | str,
    now: datetime,
    *,
    event_retention: int = DEFAULT_RETENTION,
) -> TaskLog | None:
    status = parse_status(new_status)
    task_log = get_task_log(db, task_log_id)
    if task_log is None:
        return None

    previous = task_log.status
    task_log.status = status
    if status == TaskStatus.DONE and task_log.completed_at is None:
        task_log.completed_at = now

    if task_log.source_type == TaskSourceType.SPECIAL:
        special = db.get(SpecialTask, task_log.source_id)
        if special is not None:
            special.status = status

    if previous != status:
        log_event(
            db,
            f'task:{status.value}',
            {
                'task_log_id': task_log.id,
                'assigned_to': task_log.assigned_to,
                'title': task_log.title_snapshot,
                'previous_status': previous.value,
            },
            ts=now,
            retention=event_retention,
        )
    db.flush()
    return task_log


def create_task_log(
    db: Session,
    *,
    source_type: TaskSourceType,
    source_id: int,
    title: str,
    due_at: datetime,
    assigned_to: int | None = None,
    created_at: datetime | None = None,
) -> TaskLog:
    clean_title = title.strip()
    if not clean_title:
        raise InvalidInputError('Task title is required')
    task_log = TaskLog(
        source_type=source_type,
        source_id=source_id,
        assigned_to=assigned_to,
        status=TaskStatus.PENDING,
        title_snapshot=clean_title,
        due_at=due_at,
    )
    if created_at is not None:
        task_log.created_at = created_at
    db.add(task_log)
    db.flush()
    return task_log


def list_task_logs(
    db: Session,
    *,
    status: TaskStatus | str | None = None,
    assigned_to: int | None = None,
    limit: int = 200,
) -> list[TaskLog]:
    query = select(TaskLog).order_by(TaskLog.created_at.desc(), TaskLog.id.desc()).limit(limit)
    if status is not None:
        query = query.where(TaskLog.status == parse_status(status))
    if assigned_to is not None:
        query = query.where(TaskLog.assigned_to == assigned_to)
    return db.execute(query).scalars().all()


def serialize_task_log(task_log: TaskLog, *, now: datetime | None = None) -> dict:
    payload = {
        'id': task_log.id,
        'source_type': task_log.source_type.value,
        'source_id': task_log.source_id,
        'assigned_to': task_log.assigned_to,
        'status': task_log.status.value,
        'title': task_log.title_snapshot,
        'created_at': task_log.created_at,
        'due_at': task_log.due_at,
        'completed_at': task_log.completed_at,
    }
    if now is not None:
        payload['overdue'] = task_log.status == TaskStatus.PENDING and task_log.due_at < now
    return payload


def _validate_frequency(frequency_minutes: int) -> None:
    if frequency_minutes <= 0:
        raise InvalidInputError('Frequency must be greater than zero minutes')


def create_regular_task(db: Session, *, title: str, frequency_minutes: int = 90, active: bool = True) -> RegularTask:
    clean_title = title.strip()
    if not clean_title:
        raise InvalidInputError('Task title is required')
    _validate_frequency(frequency_minutes)
    task = RegularTask(title=clean_title, frequency_minutes=frequency_minutes, active=active)
    db.add(task)
    db.flush()
    return task


def list_regular_tasks(db: Session, *, include_inactive: bool = False) -> list[RegularTask]:
    query = select(RegularTask).order_by(RegularTask.title.asc(), RegularTask.id.asc())
    if not include_inactive:
        query = query.where(RegularTask.active.is_(True))
    return db.execute(query).scalars().all()


def update_regular_task(
    db: Session,
    task_id: int,
    *,
    title: str | None = None,
    frequency_minutes: int | None = None,
    active: bool | None = None,
) -> RegularTask | None:
    task = db.get(RegularTask, task_id)
    if task is None:
        return None
    if title is not None:
        clean_title = title.strip()
        if not clean_title:
            raise InvalidInputError('Task title is required')
        task.title = clean_title
    if frequency_minutes is not None:
        _validate_frequency(frequency_minutes)
        task.frequency_minutes = frequency_minutes
    if active is not None:
        task.active = active
    db.flush()
    return task


def create_special_task(
    db: Session,
    *,
    title: str,
    assigned_to: int | None,
    due_at: datetime | None = None,
    now: datetime | None = None,
    default_due_minutes: int = 30,
    event_retention: int = DEFAULT_RETENTION,
) -> tuple[SpecialTask, TaskLog]:
    """One-off task plus the task log entry employees actually work from."""
    now = now or _now()
    if assigned_to is not None:
        employee = db.get(Employee, assigned_to)
        if employee is None or not employee.active:
            raise InvalidInputError('Assigned employee not found')
    due = due_at or now + timedelta(minutes=default_due_minutes)

    special = SpecialTask(title=title.strip(), assigned_to=assigned_to, status=TaskStatus.PENDING, due_at=due)
    if not special.title:
        raise InvalidInputError('Task title is required')
    db.add(special)
    db.flush()

    task_log = create_task_log(
        db,
        source_type=TaskSourceType.SPECIAL,
        source_id=special.id,
        title=special.title,
        due_at=due,
        assigned_to=assigned_to,
        created_at=now,
    )
    log_event(
        db,
        'task:new',
        {
            'task_log_id': task_log.id,
            'source_type': TaskSourceType.SPECIAL.value,
            'source_id': special.id,
            'assigned_to': assigned_to,
            'title': special.title,
            'due_at': due,
        },
        ts=now,
        retention=event_retention,
    )
    return special, task_log

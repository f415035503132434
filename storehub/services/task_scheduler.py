from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from storehub.auth import Role
from storehub.models import Employee, RegularTask, TaskLog, TaskSourceType
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event
from storehub.services.task_service import create_task_log

logger = logging.getLogger('storehub.scheduler')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _last_spawned_at(db: Session, regular_task_id: int) -> datetime | None:
    return db.execute(
        select(func.max(TaskLog.created_at)).where(
            TaskLog.source_type == TaskSourceType.REGULAR,
            TaskLog.source_id == regular_task_id,
        )
    ).scalar_one_or_none()


def is_task_due(db: Session, task: RegularTask, now: datetime) -> bool:
    last_spawn = _last_spawned_at(db, task.id)
    if last_spawn is None:
        return True
    if last_spawn.tzinfo is None:
        last_spawn = last_spawn.replace(tzinfo=timezone.utc)
    return now - last_spawn >= timedelta(minutes=task.frequency_minutes)


def assignable_employees(db: Session) -> list[Employee]:
    # Admins run the store; everyone else, managers included, takes rotation tasks.
    return db.execute(
        select(Employee)
        .where(Employee.active.is_(True), Employee.role != Role.ADMIN)
        .order_by(Employee.id.asc())
    ).scalars().all()


class TaskScheduler:
    """Spawns task logs from active regular tasks, assigning round-robin."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        interval_seconds: int = 60,
        due_minutes: int = 30,
        event_retention: int = DEFAULT_RETENTION,
    ) -> None:
        self._session_factory = session_factory
        self.interval_seconds = max(1, interval_seconds)
        self.due_minutes = due_minutes
        self.event_retention = event_retention
        self.rotation_index = 0
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _next_employee(self, employees: list[Employee]) -> Employee:
        employee = employees[self.rotation_index % len(employees)]
        self.rotation_index += 1
        if self.rotation_index >= len(employees) * 1000:
            self.rotation_index = 0
        return employee

    def process_regular_tasks(self, db: Session, now: datetime | None = None) -> list[TaskLog]:
        now = now or _now()
        regular_tasks = db.execute(
            select(RegularTask).where(RegularTask.active.is_(True)).order_by(RegularTask.id.asc())
        ).scalars().all()
        if not regular_tasks:
            return []

        employees = assignable_employees(db)
        if not employees:
            logger.info('scheduler_no_assignable_employees')
            return []

        spawned: list[TaskLog] = []
        for regular_task in regular_tasks:
            if not is_task_due(db, regular_task, now):
                continue
            employee = self._next_employee(employees)
            due_at = now + timedelta(minutes=self.due_minutes)
            task_log = create_task_log(
                db,
                source_type=TaskSourceType.REGULAR,
                source_id=regular_task.id,
                title=regular_task.title,
                due_at=due_at,
                assigned_to=employee.id,
                created_at=now,
            )
            log_event(
                db,
                'task:new',
                {
                    'task_log_id': task_log.id,
                    'source_type': TaskSourceType.REGULAR.value,
                    'source_id': regular_task.id,
                    'assigned_to': employee.id,
                    'employee_name': employee.name,
                    'title': regular_task.title,
                    'due_at': due_at,
                },
                ts=now,
                retention=self.event_retention,
            )
            spawned.append(task_log)
        return spawned

    def run_once(self, now: datetime | None = None) -> int:
        with self._session_factory() as db:
            spawned = self.process_regular_tasks(db, now)
            db.commit()
        if spawned:
            logger.info('scheduler_tasks_spawned', extra={'count': len(spawned)})
        return len(spawned)

    async def _loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception('scheduler_tick_failed')
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def start(self) -> None:
        if self.is_running:
            logger.info('scheduler_already_running')
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_event))
        logger.info('scheduler_started', extra={'interval_seconds': self.interval_seconds})

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self._stop_event = None
        logger.info('scheduler_stopped')

    def status(self) -> dict:
        return {
            'is_running': self.is_running,
            'rotation_index': self.rotation_index,
            'interval_seconds': self.interval_seconds,
        }

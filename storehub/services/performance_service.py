from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.models import Employee, TaskLog, TaskStatus


@dataclass
class EmployeePerformance:
    employee_id: int
    employee_name: str
    tasks_assigned: int = 0
    tasks_completed: int = 0
    help_requests: int = 0
    missed_tasks: int = 0
    pending_tasks: int = 0
    overdue_tasks: int = 0
    completion_rate: float = 0.0
    avg_completion_minutes: float | None = None
    recent_tasks: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def build_performance_summary(
    db: Session,
    *,
    now: datetime | None = None,
    lookback_days: int = 30,
    recent_limit: int = 5,
) -> list[EmployeePerformance]:
    """Per-employee task outcomes over the lookback window.

    Completion time is measured from when the task log was created to when it
    was first marked done.
    """
    now = now or _now()
    since = now - timedelta(days=lookback_days)

    employees = db.execute(
        select(Employee).where(Employee.active.is_(True)).order_by(Employee.name.asc(), Employee.id.asc())
    ).scalars().all()
    logs = db.execute(
        select(TaskLog)
        .where(TaskLog.assigned_to.is_not(None), TaskLog.created_at >= since)
        .order_by(TaskLog.created_at.desc(), TaskLog.id.desc())
    ).scalars().all()

    logs_by_employee: dict[int, list[TaskLog]] = defaultdict(list)
    for log in logs:
        logs_by_employee[log.assigned_to].append(log)

    summary: list[EmployeePerformance] = []
    for employee in employees:
        row = EmployeePerformance(employee_id=employee.id, employee_name=employee.name)
        completion_minutes: list[float] = []
        for log in logs_by_employee.get(employee.id, []):
            row.tasks_assigned += 1
            if log.status == TaskStatus.DONE:
                row.tasks_completed += 1
                if log.completed_at is not None:
                    completion_minutes.append((log.completed_at - log.created_at).total_seconds() / 60)
            elif log.status == TaskStatus.HELP:
                row.help_requests += 1
            elif log.status == TaskStatus.MISSED:
                row.missed_tasks += 1
            else:
                row.pending_tasks += 1
                if log.due_at < now:
                    row.overdue_tasks += 1
            if len(row.recent_tasks) < recent_limit:
                row.recent_tasks.append(
                    {
                        'title': log.title_snapshot,
                        'status': log.status.value,
                        'assigned_at': log.created_at,
                        'completed_at': log.completed_at,
                    }
                )
        if row.tasks_assigned:
            row.completion_rate = round(row.tasks_completed / row.tasks_assigned, 4)
        if completion_minutes:
            row.avg_completion_minutes = round(sum(completion_minutes) / len(completion_minutes), 2)
        summary.append(row)
    return summary

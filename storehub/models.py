from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from storehub.auth import Role

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
PK = BigInteger().with_variant(Integer(), 'sqlite')


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend, including SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    return SQLEnum(enum_cls, name=name, values_callable=lambda members: [member.value for member in members])


class Base(DeclarativeBase):
    pass


class TaskStatus(str, Enum):
    PENDING = 'pending'
    DONE = 'done'
    HELP = 'help'
    MISSED = 'missed'


class TaskSourceType(str, Enum):
    REGULAR = 'regular'
    SPECIAL = 'special'


class CartonAction(str, Enum):
    ADD = 'add'
    REMOVE = 'remove'
    SET = 'set'
    RESET = 'reset'


class ReadingStatus(str, Enum):
    OK = 'ok'
    HIGH = 'high'
    LOW = 'low'


class MessageType(str, Enum):
    BROADCAST = 'broadcast'
    DIRECT = 'direct'


TASK_STATUS_TYPE = _enum(TaskStatus, 'task_status')


class Employee(Base):
    __tablename__ = 'employees'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    pin_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[Role] = mapped_column(_enum(Role, 'employee_role'), nullable=False, default=Role.EMPLOYEE)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class WebSession(Base):
    __tablename__ = 'web_sessions'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(Text)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    last_seen_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class CheckInLog(Base):
    __tablename__ = 'check_in_logs'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id'), nullable=False)
    ts_in: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    ts_out: Mapped[datetime | None] = mapped_column(UTCDateTime())
    device: Mapped[str] = mapped_column(Text, nullable=False, default='dashboard')


class RegularTask(Base):
    __tablename__ = 'tasks_regular'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    frequency_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('frequency_minutes > 0', name='ck_tasks_regular_frequency_positive'),)


class SpecialTask(Base):
    __tablename__ = 'tasks_special'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey('employees.id'))
    status: Mapped[TaskStatus] = mapped_column(TASK_STATUS_TYPE, nullable=False, default=TaskStatus.PENDING)
    due_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class TaskLog(Base):
    __tablename__ = 'task_logs'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    source_type: Mapped[TaskSourceType] = mapped_column(_enum(TaskSourceType, 'task_source_type'), nullable=False)
    source_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey('employees.id'))
    status: Mapped[TaskStatus] = mapped_column(TASK_STATUS_TYPE, nullable=False, default=TaskStatus.PENDING)
    title_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    due_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index('ix_task_logs_status_assignee_due', 'status', 'assigned_to', 'due_at'),
        Index('ix_task_logs_source', 'source_type', 'source_id', 'created_at'),
    )


class CartonLedgerEntry(Base):
    __tablename__ = 'carton_ledger'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    employee_name: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[CartonAction] = mapped_column(_enum(CartonAction, 'carton_action'), nullable=False)
    amount: Mapped[int | None] = mapped_column(Integer)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    total_after: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(String(120))
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    __table_args__ = (CheckConstraint('total_after >= 0', name='ck_carton_ledger_total_non_negative'),)


class InventoryItem(Base):
    __tablename__ = 'inventory_items'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    sku: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    last_count_ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class EventLog(Base):
    __tablename__ = 'event_logs'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    detail: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    ts: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)


class Shortcut(Base):
    __tablename__ = 'shortcuts'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class TemperatureEquipment(Base):
    __tablename__ = 'temperature_equipment'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    min_temp: Mapped[int] = mapped_column(Integer, nullable=False)
    max_temp: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('max_temp > min_temp', name='ck_temperature_equipment_range'),)


class TemperatureReading(Base):
    __tablename__ = 'temperature_readings'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    equipment_id: Mapped[int] = mapped_column(ForeignKey('temperature_equipment.id'), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReadingStatus] = mapped_column(_enum(ReadingStatus, 'reading_status'), nullable=False)
    taken_by: Mapped[int] = mapped_column(ForeignKey('employees.id'), nullable=False)
    taken_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class Message(Base):
    __tablename__ = 'messages'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    type: Mapped[MessageType] = mapped_column(_enum(MessageType, 'message_type'), nullable=False)
    recipient_id: Mapped[int | None] = mapped_column(ForeignKey('employees.id'))
    sender_id: Mapped[int] = mapped_column(ForeignKey('employees.id'), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class MessageRead(Base):
    """One row per reader, so a broadcast stays unread for everyone who has not opened it."""

    __tablename__ = 'message_reads'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    message_id: Mapped[int] = mapped_column(ForeignKey('messages.id'), nullable=False)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id'), nullable=False)
    read_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint('message_id', 'employee_id', name='uq_message_reads_message_employee'),)


class Setting(Base):
    __tablename__ = 'settings'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    key: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class Camera(Base):
    __tablename__ = 'cameras'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    rtsp_url: Mapped[str | None] = mapped_column(Text)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from storehub.auth import Role
from storehub.models import CartonAction, MessageType, TaskStatus


class PinLoginRequest(BaseModel):
    pin: str = Field(min_length=1, max_length=16)


class EmployeeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    pin: str
    role: Role = Role.EMPLOYEE


class EmployeeUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    pin: str | None = None
    role: Role | None = None
    active: bool | None = None


class CheckInRequest(BaseModel):
    device: str = 'dashboard'


class CartonEntryRequest(BaseModel):
    action: CartonAction
    amount: int | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=120)
    employee_name: str | None = Field(
        default=None,
        max_length=120,
        validation_alias=AliasChoices('employee', 'employee_name'),
    )


class RegularTaskCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    frequency_minutes: int = Field(default=90, gt=0)
    active: bool = True


class RegularTaskUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    frequency_minutes: int | None = Field(default=None, gt=0)
    active: bool | None = None


class SpecialTaskCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    assigned_to: int | None = None
    due_at: datetime | None = None


class TaskStatusRequest(BaseModel):
    status: TaskStatus


class EmployeeCallRequest(BaseModel):
    employee_id: int
    task_log_id: int | None = None
    note: str | None = Field(default=None, max_length=200)


class InventoryCountRequest(BaseModel):
    count: int = Field(ge=0)
    reason: str = 'count'


class InventoryItemCreateRequest(BaseModel):
    sku: str = Field(min_length=1, max_length=40)
    name: str = Field(min_length=1, max_length=120)
    count: int = Field(default=0, ge=0)
    min_threshold: int = Field(default=5, ge=0)


class EquipmentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    min_temp: int
    max_temp: int
    interval_hours: int = 14
    active: bool = True


class EquipmentUpdateRequest(BaseModel):
    name: str | None = None
    min_temp: int | None = None
    max_temp: int | None = None
    interval_hours: int | None = None
    active: bool | None = None


class ReadingCreateRequest(BaseModel):
    equipment_id: int
    value: int
    taken_by: int | None = None


class MessageCreateRequest(BaseModel):
    type: MessageType = MessageType.BROADCAST
    recipient_id: int | None = None
    content: str = Field(min_length=1, max_length=1000)


class ShortcutCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    url: str
    icon: str | None = None
    category: str | None = None
    visible: bool = True
    sort_order: int = 0


class ShortcutUpdateRequest(BaseModel):
    name: str | None = None
    url: str | None = None
    icon: str | None = None
    category: str | None = None
    visible: bool | None = None
    sort_order: int | None = None


class CameraCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    rtsp_url: str | None = None
    enabled: bool = True


class CameraUpdateRequest(BaseModel):
    name: str | None = None
    rtsp_url: str | None = None
    enabled: bool | None = None


class SettingUpdateRequest(BaseModel):
    key: str = Field(min_length=1, max_length=120)
    value: str

from fastapi import Request

from storehub.config import Settings
from storehub.services.carton_ledger_service import CartonLedger
from storehub.services.task_scheduler import TaskScheduler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_carton_ledger(request: Request) -> CartonLedger:
    return request.app.state.carton_ledger


def get_task_scheduler(request: Request) -> TaskScheduler:
    return request.app.state.task_scheduler


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None

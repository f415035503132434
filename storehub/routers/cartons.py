from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from storehub.auth import Principal, Role, require_role
from storehub.config import Settings
from storehub.dependencies import get_carton_ledger, get_settings
from storehub.schemas import CartonEntryRequest
from storehub.services.carton_ledger_service import CartonLedger

router = APIRouter(prefix='/api/cartons', tags=['cartons'])


def _history_limit(limit: int | None, settings: Settings) -> int:
    return settings.carton_history_limit if limit is None else min(max(limit, 0), 1000)


@router.get('')
def cartons_index(
    limit: int | None = None,
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    ledger: CartonLedger = Depends(get_carton_ledger),
    settings: Settings = Depends(get_settings),
):
    limit = _history_limit(limit, settings)
    last = ledger.last_entry()
    return {
        'total': ledger.total(),
        'history': [entry.to_dict() for entry in ledger.history(limit)],
        'can_undo': last is not None,
    }


@router.get('/ledger')
def cartons_ledger(
    limit: int | None = None,
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    ledger: CartonLedger = Depends(get_carton_ledger),
    settings: Settings = Depends(get_settings),
):
    limit = _history_limit(limit, settings)
    return [entry.to_dict() for entry in ledger.history(limit)]


@router.get('/total')
def cartons_total(
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    ledger: CartonLedger = Depends(get_carton_ledger),
):
    return {'total': ledger.total()}


@router.post('/adjust', status_code=status.HTTP_201_CREATED)
def cartons_adjust(
    payload: CartonEntryRequest,
    principal: Principal = Depends(require_role(Role.EMPLOYEE)),
    ledger: CartonLedger = Depends(get_carton_ledger),
):
    entry = ledger.append(
        payload.action,
        payload.amount,
        payload.employee_name or principal.name,
        payload.note,
    )
    return {'entry': entry.to_dict(), 'total': ledger.total()}


@router.post('/undo')
def cartons_undo(
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    ledger: CartonLedger = Depends(get_carton_ledger),
):
    if not ledger.undo_last():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Nothing to undo')
    return {'success': True, 'total': ledger.total()}

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from storehub.errors import InvalidInputError, LedgerInvariantError
from storehub.models import CartonAction, CartonLedgerEntry
from storehub.services.event_log_service import DEFAULT_RETENTION, log_event

logger = logging.getLogger('storehub.cartons')

NOTE_MAX_LENGTH = 120
AMOUNT_REQUIRED_ACTIONS = frozenset({CartonAction.ADD, CartonAction.REMOVE, CartonAction.SET})


@dataclass(frozen=True)
class LedgerEntry:
    id: int
    employee_name: str
    action: CartonAction
    amount: int | None
    delta: int
    total_after: int
    note: str | None
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'employee_name': self.employee_name,
            'action': self.action.value,
            'amount': self.amount,
            'delta': self.delta,
            'total_after': self.total_after,
            'note': self.note,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class CartonChange:
    amount: int | None
    delta: int
    new_total: int


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_action(action: CartonAction | str) -> CartonAction:
    if isinstance(action, CartonAction):
        return action
    try:
        return CartonAction(str(action).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f'Unknown carton action: {action!r}') from exc


def compute_change(action: CartonAction | str, amount: int | None, current_total: int) -> CartonChange:
    """Delta and resulting total for one ledger action.

    A clamped remove still records the requested ``-amount`` as its delta;
    ``total_after`` is the authoritative running value.
    """
    action = parse_action(action)
    if action in AMOUNT_REQUIRED_ACTIONS:
        if amount is None:
            raise InvalidInputError(f'Amount is required for {action.value}')
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidInputError('Amount must be a whole number')

    if action == CartonAction.ADD:
        return CartonChange(amount=amount, delta=amount, new_total=current_total + amount)
    if action == CartonAction.REMOVE:
        return CartonChange(amount=amount, delta=-amount, new_total=max(0, current_total - amount))
    if action == CartonAction.SET:
        return CartonChange(amount=amount, delta=amount - current_total, new_total=amount)
    return CartonChange(amount=None, delta=-current_total, new_total=0)


def _to_entry(row: CartonLedgerEntry) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        employee_name=row.employee_name,
        action=CartonAction(row.action),
        amount=row.amount,
        delta=row.delta,
        total_after=row.total_after,
        note=row.note,
        timestamp=row.timestamp,
    )


def _last_row(db: Session) -> CartonLedgerEntry | None:
    return db.execute(
        select(CartonLedgerEntry).order_by(CartonLedgerEntry.id.desc()).limit(1)
    ).scalar_one_or_none()


class CartonLedger:
    """Store-wide carton count with an append-only audit trail.

    All mutation goes through ``append`` and ``undo_last``; both hold the
    instance lock so the ``total_after`` chain is built one entry at a time.
    The cached total is re-read from the last entry on construction, so a
    durable database carries the running total across restarts.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        history_limit: int = 100,
        event_retention: int = DEFAULT_RETENTION,
    ) -> None:
        self._session_factory = session_factory
        self._history_limit = history_limit
        self._event_retention = event_retention
        self._lock = threading.Lock()
        with self._session_factory() as db:
            last = _last_row(db)
        self._total = last.total_after if last else 0

    def total(self) -> int:
        return self._total

    def append(
        self,
        action: CartonAction | str,
        amount: int | None,
        employee_name: str,
        note: str | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> LedgerEntry:
        clean_name = (employee_name or '').strip()
        if not clean_name:
            raise InvalidInputError('Employee name is required')
        clean_note = (note or '').strip() or None
        if clean_note and len(clean_note) > NOTE_MAX_LENGTH:
            raise InvalidInputError(f'Note cannot exceed {NOTE_MAX_LENGTH} characters')

        with self._lock, self._session_factory() as db:
            last = _last_row(db)
            stored_total = last.total_after if last else 0
            if stored_total != self._total:
                logger.error(
                    'carton_total_out_of_sync',
                    extra={'cached_total': self._total, 'stored_total': stored_total},
                )
                raise LedgerInvariantError(
                    f'Cached carton total {self._total} does not match last entry total {stored_total}'
                )

            change = compute_change(action, amount, self._total)
            if change.new_total < 0:
                raise LedgerInvariantError(f'Carton total would become negative ({change.new_total})')

            row = CartonLedgerEntry(
                employee_name=clean_name,
                action=parse_action(action),
                amount=change.amount,
                delta=change.delta,
                total_after=change.new_total,
                note=clean_note,
                timestamp=timestamp or _now(),
            )
            db.add(row)
            db.flush()
            entry = _to_entry(row)
            log_event(
                db,
                f'carton:{entry.action.value}',
                {
                    'entry_id': entry.id,
                    'employee_name': entry.employee_name,
                    'amount': entry.amount,
                    'delta': entry.delta,
                    'total_after': entry.total_after,
                },
                retention=self._event_retention,
            )
            db.commit()
            self._total = change.new_total

        logger.info(
            'carton_entry_appended',
            extra={'entry_id': entry.id, 'action': entry.action.value, 'delta': entry.delta, 'total': entry.total_after},
        )
        return entry

    def history(self, limit: int | None = None) -> list[LedgerEntry]:
        limit = self._history_limit if limit is None else limit
        if limit <= 0:
            return []
        with self._session_factory() as db:
            rows = db.execute(
                select(CartonLedgerEntry)
                .order_by(CartonLedgerEntry.timestamp.desc(), CartonLedgerEntry.id.desc())
                .limit(limit)
            ).scalars().all()
            return [_to_entry(row) for row in rows]

    def last_entry(self) -> LedgerEntry | None:
        with self._session_factory() as db:
            row = _last_row(db)
            return _to_entry(row) if row else None

    def undo_last(self) -> bool:
        with self._lock, self._session_factory() as db:
            last = _last_row(db)
            if last is None:
                return False
            removed = _to_entry(last)
            db.delete(last)
            db.flush()
            previous = _last_row(db)
            restored_total = previous.total_after if previous else 0
            log_event(
                db,
                'carton:undo',
                {
                    'entry_id': removed.id,
                    'action': removed.action.value,
                    'restored_total': restored_total,
                },
                retention=self._event_retention,
            )
            db.commit()
            self._total = restored_total

        logger.info('carton_entry_undone', extra={'entry_id': removed.id, 'total': restored_total})
        return True

    def size(self) -> int:
        with self._session_factory() as db:
            return db.execute(select(func.count(CartonLedgerEntry.id))).scalar_one()

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class InvalidInputError(ValueError):
    """Malformed action, amount, status or other caller-supplied value."""


class LedgerInvariantError(RuntimeError):
    """The carton ledger would enter a state that breaks its running total."""


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, 'request_id', None)
    if request_id:
        return str(request_id)
    return 'unknown'


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        'error': {
            'code': code,
            'message': message,
            'request_id': get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)

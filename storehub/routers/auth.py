from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storehub.auth import Principal, get_current_principal
from storehub.config import Settings
from storehub.db import get_db
from storehub.dependencies import get_client_ip, get_settings
from storehub.schemas import PinLoginRequest
from storehub.security.sessions import create_web_session, revoke_web_session, token_from_request
from storehub.services.employee_service import authenticate_pin, serialize_employee
from storehub.services.event_log_service import log_event

router = APIRouter(prefix='/api/auth', tags=['auth'])


@router.post('/login')
def login(
    payload: PinLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    ip = get_client_ip(request)
    employee = authenticate_pin(db, payload.pin)
    if employee is None:
        log_event(db, 'auth:failed', {'ip': ip}, retention=settings.event_log_retention)
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid PIN')

    token = create_web_session(
        db,
        employee.id,
        ttl_minutes=settings.session_ttl_minutes,
        ip=ip,
        user_agent=request.headers.get('user-agent'),
    )
    log_event(db, 'auth:login', {'employee_id': employee.id, 'ip': ip}, retention=settings.event_log_retention)
    db.commit()

    response = JSONResponse(jsonable_encoder({'employee': serialize_employee(employee), 'token': token}))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    principal = getattr(request.state, 'principal', None)
    token = token_from_request(request, settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)
    log_event(
        db,
        'auth:logout',
        {'employee_id': principal.id if principal else None},
        retention=settings.event_log_retention,
    )
    db.commit()

    response = JSONResponse({'success': True})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {
        'id': principal.id,
        'name': principal.name,
        'role': principal.role.value,
        'active': principal.active,
    }

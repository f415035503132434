from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role
from storehub.models import Employee, WebSession


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _session_expiry(ttl_minutes: int) -> datetime:
    return _now() + timedelta(minutes=ttl_minutes)


def create_web_session(
    db: Session,
    employee_id: int,
    *,
    ttl_minutes: int,
    ip: str | None,
    user_agent: str | None,
) -> str:
    token = secrets.token_urlsafe(48)
    db.add(
        WebSession(
            session_token=token,
            employee_id=employee_id,
            ip=ip,
            user_agent=user_agent,
            expires_at=_session_expiry(ttl_minutes),
        )
    )
    db.flush()
    return token


def revoke_web_session(db: Session, token: str) -> None:
    session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return
    session.revoked_at = _now()


def load_principal_from_token(db: Session, token: str | None, *, ttl_minutes: int) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(WebSession, Employee)
        .join(Employee, Employee.id == WebSession.employee_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, employee = row
    now = _now()
    if web_session.revoked_at is not None or web_session.expires_at <= now:
        return None

    web_session.last_seen_at = now
    web_session.expires_at = _session_expiry(ttl_minutes)
    return Principal(
        id=employee.id,
        name=employee.name,
        role=Role(employee.role),
        active=employee.active,
    )


def token_from_request(request: Request, cookie_name: str) -> str | None:
    authorization = request.headers.get('authorization', '')
    scheme, _, credentials = authorization.partition(' ')
    if scheme.lower() == 'bearer' and credentials.strip():
        return credentials.strip()
    return request.cookies.get(cookie_name)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        settings = request.app.state.settings
        token = token_from_request(request, settings.session_cookie_name)
        principal = None
        if token:
            with request.app.state.session_factory() as db:
                principal = load_principal_from_token(db, token, ttl_minutes=settings.session_ttl_minutes)
                db.commit()
        request.state.principal = principal
        return await call_next(request)

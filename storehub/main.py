from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from storehub.config import Settings
from storehub.config import settings as default_settings
from storehub.db import session_factory_from_settings
from storehub.errors import InvalidInputError, LedgerInvariantError, error_response
from storehub.logging_utils import setup_json_logging
from storehub.routers import auth, cartons, employees, management, messages, store_config, tasks, temperature
from storehub.security.sessions import install_auth_session_middleware
from storehub.seed_example import seed
from storehub.services.carton_ledger_service import CartonLedger
from storehub.services.task_scheduler import TaskScheduler

logger = logging.getLogger('storehub.request')
app_logger = logging.getLogger('storehub.app')

HTTP_ERROR_CODES = {
    400: 'INVALID_INPUT',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'METHOD_NOT_ALLOWED',
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler: TaskScheduler = app.state.task_scheduler
    if app.state.settings.scheduler_enabled:
        scheduler.start()
    app_logger.info('app_started', extra={'scheduler_enabled': app.state.settings.scheduler_enabled})
    try:
        yield
    finally:
        await scheduler.stop()


def install_request_logging(app: FastAPI) -> None:
    @app.middleware('http')
    async def request_middleware(request: Request, call_next):
        request_id = request.headers.get('X-Request-Id') or str(uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers['X-Request-Id'] = request_id
            return response
        finally:
            principal = getattr(request.state, 'principal', None)
            logger.info(
                'request_complete',
                extra={
                    'request_id': request_id,
                    'path': request.url.path,
                    'method': request.method,
                    'status_code': status_code,
                    'latency_ms': round((time.perf_counter() - start) * 1000, 2),
                    'employee_id': principal.id if principal else None,
                },
            )


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return error_response(request, status_code=400, code='INVALID_INPUT', message=str(exc))

    @app.exception_handler(LedgerInvariantError)
    async def handle_ledger_invariant(request: Request, exc: LedgerInvariantError) -> JSONResponse:
        logger.exception(
            'ledger_invariant_violation',
            extra={'request_id': getattr(request.state, 'request_id', 'unknown'), 'path': request.url.path},
        )
        return error_response(request, status_code=500, code='LEDGER_INVARIANT', message=str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = HTTP_ERROR_CODES.get(exc.status_code, 'HTTP_ERROR')
        message = str(exc.detail) if exc.detail else 'Request failed.'
        return error_response(request, status_code=exc.status_code, code=code, message=message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(request, status_code=422, code='VALIDATION_ERROR', message=str(exc.errors()))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            'unhandled_error',
            extra={
                'request_id': getattr(request.state, 'request_id', 'unknown'),
                'path': request.url.path,
                'method': request.method,
            },
        )
        return error_response(request, status_code=500, code='INTERNAL_ERROR', message='Unexpected server error.')


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    settings = settings or default_settings
    if configure_logging:
        setup_json_logging(settings.log_level)
    session_factory = session_factory or session_factory_from_settings(settings)
    if settings.seed_demo_data:
        seed(session_factory)

    app = FastAPI(title='StoreHub Dashboard', lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.carton_ledger = CartonLedger(
        session_factory,
        history_limit=settings.carton_history_limit,
        event_retention=settings.event_log_retention,
    )
    app.state.task_scheduler = TaskScheduler(
        session_factory,
        interval_seconds=settings.scheduler_interval_seconds,
        due_minutes=settings.task_due_minutes,
        event_retention=settings.event_log_retention,
    )

    install_auth_session_middleware(app)
    install_request_logging(app)
    install_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(employees.router)
    app.include_router(tasks.router)
    app.include_router(cartons.router)
    app.include_router(temperature.router)
    app.include_router(messages.router)
    app.include_router(store_config.router)
    app.include_router(management.router)

    @app.get('/api/health')
    def health():
        return {'status': 'ok', 'carton_total': app.state.carton_ledger.total()}

    return app

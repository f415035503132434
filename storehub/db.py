from __future__ import annotations

from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from storehub.config import Settings
from storehub.models import Base


def is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    if parsed.get_backend_name() != 'sqlite':
        return False
    database = parsed.database or ''
    return database in ('', ':memory:') or parsed.query.get('mode') == 'memory'


def build_engine(url: str) -> Engine:
    if not url.startswith('sqlite'):
        return create_engine(url, pool_pre_ping=True)
    # Sessions never share a DBAPI connection.
    if is_memory_sqlite(url):
        raise ValueError('In-memory SQLite cannot be shared between sessions; use a database file')
    engine = create_engine(url, connect_args={'check_same_thread': False, 'timeout': 30})

    @event.listens_for(engine, 'connect')
    def _enable_wal(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def session_factory_from_settings(settings: Settings) -> sessionmaker[Session]:
    engine = build_engine(settings.database_url_normalized)
    init_db(engine)
    return build_session_factory(engine)


def get_db(request: Request) -> Iterator[Session]:
    with request.app.state.session_factory() as db:
        yield db

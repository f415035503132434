from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from storehub.errors import InvalidInputError
from storehub.models import Camera, Setting, Shortcut

_UNSET = object()


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _require_text(value: str | None, label: str) -> str:
    clean = (value or '').strip()
    if not clean:
        raise InvalidInputError(f'{label} is required')
    return clean


def _validate_url(url: str, schemes: set[str], label: str) -> str:
    clean = _require_text(url, label)
    parsed = urlparse(clean)
    if parsed.scheme.lower() not in schemes or not parsed.netloc:
        allowed = ', '.join(sorted(schemes))
        raise InvalidInputError(f'{label} must be a full {allowed} URL')
    return clean


# Shortcuts


def list_shortcuts(db: Session, *, visible_only: bool = False) -> list[Shortcut]:
    query = select(Shortcut).order_by(Shortcut.sort_order.asc(), Shortcut.name.asc(), Shortcut.id.asc())
    if visible_only:
        query = query.where(Shortcut.visible.is_(True))
    return db.execute(query).scalars().all()


def create_shortcut(
    db: Session,
    *,
    name: str,
    url: str,
    icon: str | None = None,
    category: str | None = None,
    visible: bool = True,
    sort_order: int = 0,
) -> Shortcut:
    shortcut = Shortcut(
        name=_require_text(name, 'Shortcut name'),
        url=_validate_url(url, {'http', 'https'}, 'Shortcut URL'),
        icon=(icon or '').strip() or None,
        category=(category or '').strip() or None,
        visible=visible,
        sort_order=sort_order,
    )
    db.add(shortcut)
    db.flush()
    return shortcut


def update_shortcut(db: Session, shortcut_id: int, **changes) -> Shortcut | None:
    shortcut = db.get(Shortcut, shortcut_id)
    if shortcut is None:
        return None
    if changes.get('name') is not None:
        shortcut.name = _require_text(changes['name'], 'Shortcut name')
    if changes.get('url') is not None:
        shortcut.url = _validate_url(changes['url'], {'http', 'https'}, 'Shortcut URL')
    if 'icon' in changes:
        shortcut.icon = (changes['icon'] or '').strip() or None
    if 'category' in changes:
        shortcut.category = (changes['category'] or '').strip() or None
    if changes.get('visible') is not None:
        shortcut.visible = changes['visible']
    if changes.get('sort_order') is not None:
        shortcut.sort_order = changes['sort_order']
    db.flush()
    return shortcut


def delete_shortcut(db: Session, shortcut_id: int) -> bool:
    shortcut = db.get(Shortcut, shortcut_id)
    if shortcut is None:
        return False
    db.delete(shortcut)
    db.flush()
    return True


def serialize_shortcut(shortcut: Shortcut) -> dict:
    return {
        'id': shortcut.id,
        'name': shortcut.name,
        'url': shortcut.url,
        'icon': shortcut.icon,
        'category': shortcut.category,
        'visible': shortcut.visible,
        'sort_order': shortcut.sort_order,
    }


# Cameras


def list_cameras(db: Session, *, enabled_only: bool = False) -> list[Camera]:
    query = select(Camera).order_by(Camera.name.asc(), Camera.id.asc())
    if enabled_only:
        query = query.where(Camera.enabled.is_(True))
    return db.execute(query).scalars().all()


def create_camera(db: Session, *, name: str, rtsp_url: str | None = None, enabled: bool = True) -> Camera:
    camera = Camera(
        name=_require_text(name, 'Camera name'),
        rtsp_url=_validate_url(rtsp_url, {'rtsp', 'rtsps'}, 'Stream URL') if rtsp_url else None,
        enabled=enabled,
    )
    db.add(camera)
    db.flush()
    return camera


def update_camera(
    db: Session,
    camera_id: int,
    *,
    name: str | None = None,
    rtsp_url=_UNSET,
    enabled: bool | None = None,
) -> Camera | None:
    camera = db.get(Camera, camera_id)
    if camera is None:
        return None
    if name is not None:
        camera.name = _require_text(name, 'Camera name')
    if rtsp_url is not _UNSET:
        camera.rtsp_url = _validate_url(rtsp_url, {'rtsp', 'rtsps'}, 'Stream URL') if rtsp_url else None
    if enabled is not None:
        camera.enabled = enabled
    db.flush()
    return camera


def delete_camera(db: Session, camera_id: int) -> bool:
    camera = db.get(Camera, camera_id)
    if camera is None:
        return False
    db.delete(camera)
    db.flush()
    return True


def serialize_camera(camera: Camera) -> dict:
    return {
        'id': camera.id,
        'name': camera.name,
        'rtsp_url': camera.rtsp_url,
        'enabled': camera.enabled,
    }


# Key/value settings


def get_setting(db: Session, key: str, default: str | None = None) -> str | None:
    value = db.execute(select(Setting.value).where(Setting.key == key)).scalar_one_or_none()
    return default if value is None else value


def list_settings(db: Session) -> dict[str, str]:
    rows = db.execute(select(Setting.key, Setting.value).order_by(Setting.key.asc())).all()
    return {row.key: row.value for row in rows}


def upsert_setting(db: Session, *, key: str, value: str) -> Setting:
    clean_key = _require_text(key, 'Setting key')
    if len(clean_key) > 120:
        raise InvalidInputError('Setting key cannot exceed 120 characters')
    setting = db.execute(select(Setting).where(Setting.key == clean_key)).scalar_one_or_none()
    if setting is None:
        setting = Setting(key=clean_key, value=value)
        db.add(setting)
    else:
        setting.value = value
        setting.updated_at = _now()
    db.flush()
    return setting

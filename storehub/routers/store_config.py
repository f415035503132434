from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storehub.auth import Principal, Role, require_role
from storehub.db import get_db
from storehub.schemas import (
    CameraCreateRequest,
    CameraUpdateRequest,
    SettingUpdateRequest,
    ShortcutCreateRequest,
    ShortcutUpdateRequest,
)
from storehub.services.store_config_service import (
    create_camera,
    create_shortcut,
    delete_camera,
    delete_shortcut,
    list_cameras,
    list_settings,
    list_shortcuts,
    serialize_camera,
    serialize_shortcut,
    update_camera,
    update_shortcut,
    upsert_setting,
)

router = APIRouter(prefix='/api', tags=['store-config'])


@router.get('/shortcuts')
def shortcuts_index(
    include_hidden: bool = False,
    _: Principal = Depends(require_role(Role.EMPLOYEE)),
    db: Session = Depends(get_db),
):
    return [serialize_shortcut(item) for item in list_shortcuts(db, visible_only=not include_hidden)]


@router.post('/shortcuts', status_code=status.HTTP_201_CREATED)
def shortcuts_create(
    payload: ShortcutCreateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    shortcut = create_shortcut(db, **payload.model_dump())
    db.commit()
    return serialize_shortcut(shortcut)


@router.patch('/shortcuts/{shortcut_id}')
def shortcuts_update(
    shortcut_id: int,
    payload: ShortcutUpdateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    shortcut = update_shortcut(db, shortcut_id, **payload.model_dump(exclude_unset=True))
    if shortcut is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Shortcut not found')
    db.commit()
    return serialize_shortcut(shortcut)


@router.delete('/shortcuts/{shortcut_id}')
def shortcuts_delete(
    shortcut_id: int,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if not delete_shortcut(db, shortcut_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Shortcut not found')
    db.commit()
    return {'success': True}


@router.get('/cameras')
def cameras_index(
    _: Principal = Depends(require_role(Role.SHIFT_LEAD)),
    db: Session = Depends(get_db),
):
    return [serialize_camera(camera) for camera in list_cameras(db)]


@router.post('/cameras', status_code=status.HTTP_201_CREATED)
def cameras_create(
    payload: CameraCreateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    camera = create_camera(db, name=payload.name, rtsp_url=payload.rtsp_url, enabled=payload.enabled)
    db.commit()
    return serialize_camera(camera)


@router.patch('/cameras/{camera_id}')
def cameras_update(
    camera_id: int,
    payload: CameraUpdateRequest,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    camera = update_camera(db, camera_id, **payload.model_dump(exclude_unset=True))
    if camera is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Camera not found')
    db.commit()
    return serialize_camera(camera)


@router.delete('/cameras/{camera_id}')
def cameras_delete(
    camera_id: int,
    _: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if not delete_camera(db, camera_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Camera not found')
    db.commit()
    return {'success': True}


@router.get('/settings')
def settings_index(
    _: Principal = Depends(require_role(Role.MANAGER)),
    db: Session = Depends(get_db),
):
    return list_settings(db)


@router.put('/settings')
def settings_update(
    payload: SettingUpdateRequest,
    _: Principal = Depends(require_role(Role.MANAGER)),
    db: Session = Depends(get_db),
):
    setting = upsert_setting(db, key=payload.key, value=payload.value)
    db.commit()
    return {'key': setting.key, 'value': setting.value, 'updated_at': setting.updated_at}

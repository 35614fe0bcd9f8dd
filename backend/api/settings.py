"""
Settings API endpoints

Backend selection and intervals are read at startup; changes apply after a restart.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession
from typing import List
from database import get_db
from models import Setting as SettingModel
from schemas import Setting, SettingBase
from constants import HTTPStatus
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings", response_model=List[Setting])
def get_settings(db: DBSession = Depends(get_db)):
    """Get all settings"""
    return db.query(SettingModel).order_by(SettingModel.key).all()


@router.get("/settings/{key}", response_model=Setting)
def get_setting(key: str, db: DBSession = Depends(get_db)):
    """Get a specific setting"""
    setting = db.query(SettingModel).filter(SettingModel.key == key).first()
    if not setting:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"Setting '{key}' not found")
    return setting


@router.put("/settings/{key}", response_model=Setting)
def update_setting(key: str, setting_update: SettingBase, db: DBSession = Depends(get_db)):
    """Update a specific setting value"""
    if setting_update.key != key:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Key mismatch in path and body")

    setting = db.query(SettingModel).filter(SettingModel.key == key).first()
    if not setting:
        # Create the setting if it doesn't exist
        setting = SettingModel(key=key, value=setting_update.value)
        db.add(setting)
    else:
        setting.value = setting_update.value

    db.commit()
    db.refresh(setting)
    logger.info(f"Setting '{key}' updated")

    return setting

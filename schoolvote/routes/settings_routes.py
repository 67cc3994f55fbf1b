from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..models.settings_model import ElectionSettings, SettingsUpdate
from ..security import require_permission
from . import client_ip

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("", response_model=ElectionSettings)
def read_settings(db: Database = Depends(get_database)):
    return crud.get_settings(db)


@router.put("", response_model=ElectionSettings)
def write_settings(
    update: SettingsUpdate,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("settings", "edit")),
):
    settings = crud.update_settings(db, update)
    changed = ", ".join(sorted(update.model_dump(exclude_unset=True))) or "nothing"
    crud.record_activity(
        db, "update", "settings", entity_id="election",
        details=f"Updated settings: {changed}", user=user, ip_address=client_ip(request),
    )
    return settings

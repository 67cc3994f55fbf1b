from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..security import require_permission

router = APIRouter(prefix="/api/logs", tags=["Activity Logs"])


@router.get("")
def get_logs(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("logs", "view")),
):
    return crud.list_logs(db)


@router.delete("/clear")
def clear_logs(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("logs", "delete")),
):
    deleted = crud.clear_logs(db)
    return {"message": "All activity logs have been cleared", "deleted": deleted}

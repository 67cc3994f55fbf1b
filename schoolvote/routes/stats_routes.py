from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..models.stats_model import ElectionStats
from ..security import require_permission

router = APIRouter(prefix="/api/elections", tags=["Election"])


@router.get("/stats", response_model=ElectionStats, response_model_by_alias=True)
def get_stats(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("dashboard", "view")),
):
    return crud.election_stats(db)

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..models.voter_model import VoterIn, VoterOut, VoterValidateRequest
from ..security import require_permission
from . import client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voters", tags=["Voters"])


@router.post("/validate")
def validate_voter(body: VoterValidateRequest, db: Database = Depends(get_database)):
    """Check a voter id before the ballot is shown."""
    voter = crud.get_voter(db, body.voterId.strip())
    if not voter:
        raise HTTPException(status_code=404, detail="Voter ID not found.")
    if voter.get("hasVoted"):
        raise HTTPException(status_code=400, detail="Voter has already voted.")
    return {"status": "ok", "voter": crud.voter_out(voter)}


@router.get("", response_model=List[VoterOut])
def get_voters(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("voters", "view")),
):
    return crud.list_voters(db)


@router.post("", response_model=VoterOut, status_code=201)
def add_voter(
    voter: VoterIn,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("voters", "add")),
):
    created = crud.create_voter(db, voter)
    if not created:
        raise HTTPException(status_code=400, detail=f"Voter {voter.voterId} already exists.")
    crud.record_activity(
        db, "create", "voter", entity_id=voter.voterId,
        details=f"Registered voter {voter.name}", user=user, ip_address=client_ip(request),
    )
    return created


@router.delete("/{voter_id}")
def remove_voter(
    voter_id: str,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("voters", "delete")),
):
    if not crud.delete_voter(db, voter_id):
        raise HTTPException(status_code=404, detail="Voter not found.")
    crud.record_activity(
        db, "delete", "voter", entity_id=voter_id,
        details=f"Removed voter {voter_id}", user=user, ip_address=client_ip(request),
    )
    return {"message": "Voter deleted successfully!"}

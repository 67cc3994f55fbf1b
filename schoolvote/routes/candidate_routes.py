import logging
from typing import Any, Dict, List

from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..models.candidate_model import Candidate, CandidateIn, CandidateUpdate
from ..security import require_permission
from . import client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/candidates", tags=["Candidates"])


@router.get("/for-voter", response_model=Dict[str, List[Candidate]])
def get_candidates_for_voter(voterId: str = Query(..., min_length=1), db: Database = Depends(get_database)):
    voter = crud.get_voter(db, voterId)
    if not voter:
        raise HTTPException(status_code=404, detail="Voter not found.")
    return crud.ballot_for_voter(db, voter)


@router.get("", response_model=List[Candidate])
def get_candidates(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("candidates", "view")),
):
    return crud.list_candidates(db)


@router.post("", response_model=Candidate, status_code=201)
def add_candidate(
    candidate: CandidateIn,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("candidates", "add")),
):
    created = crud.create_candidate(db, candidate)
    crud.record_activity(
        db, "create", "candidate", entity_id=created["id"],
        details=f"Added {created['name']} for {created['position']}", user=user, ip_address=client_ip(request),
    )
    return created


@router.put("/{candidate_id}", response_model=Candidate)
def edit_candidate(
    candidate_id: str,
    update: CandidateUpdate,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("candidates", "edit")),
):
    try:
        updated = crud.update_candidate(db, candidate_id, update)
    except InvalidId:
        raise HTTPException(status_code=400, detail="Invalid candidate ID format.")
    if not updated:
        raise HTTPException(status_code=404, detail="Candidate not found.")
    crud.record_activity(
        db, "update", "candidate", entity_id=candidate_id,
        details=f"Updated {updated['name']}", user=user, ip_address=client_ip(request),
    )
    return updated


@router.delete("/{candidate_id}")
def remove_candidate(
    candidate_id: str,
    request: Request,
    db: Database = Depends(get_database),
    user: Dict[str, Any] = Depends(require_permission("candidates", "delete")),
):
    try:
        deleted = crud.delete_candidate(db, candidate_id)
    except InvalidId:
        raise HTTPException(status_code=400, detail="Invalid candidate ID format.")
    if not deleted:
        raise HTTPException(status_code=404, detail="Candidate not found.")
    crud.record_activity(
        db, "delete", "candidate", entity_id=candidate_id,
        details=f"Deleted candidate {candidate_id}", user=user, ip_address=client_ip(request),
    )
    return {"message": "Candidate deleted successfully!"}

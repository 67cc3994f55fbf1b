import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..models.vote_model import VoteSubmission
from . import client_ip

logger = logging.getLogger(__name__)

vote_router = APIRouter(prefix="/api/votes", tags=["Vote"])


@vote_router.post("")
def cast_vote(submission: VoteSubmission, request: Request, db: Database = Depends(get_database)):
    """
    Records a voter's complete ballot: one choice or abstention per position.
    """
    voter = crud.get_voter(db, submission.voterId)
    if not voter:
        raise HTTPException(status_code=404, detail="Voter not found.")
    if voter.get("hasVoted"):
        raise HTTPException(status_code=400, detail="Voter has already voted.")

    try:
        summary = crud.cast_ballot(db, voter, submission)
    except ValueError as e:
        logger.warning(f"Rejected ballot for {submission.voterId}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    crud.record_activity(
        db, "vote", "voter", entity_id=submission.voterId,
        details=f"Ballot cast: {summary['selections']} selections, {summary['abstentions']} abstentions",
        user_id=submission.voterId, ip_address=client_ip(request),
    )
    return {"message": "Vote cast successfully!", **summary}

import logging
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from .database.connection import (
    CANDIDATES_COLLECTION,
    LOGS_COLLECTION,
    SETTINGS_COLLECTION,
    USERS_COLLECTION,
    VOTERS_COLLECTION,
    VOTES_COLLECTION,
)
from .models.candidate_model import CandidateIn, CandidateUpdate
from .models.settings_model import ElectionSettings, SettingsUpdate
from .models.stats_model import ActivitySeries, ElectionStats, VotingActivity
from .models.vote_model import VoteSubmission
from .models.voter_model import VoterIn
from .permissions import permissions_for
from .schemas import UserCreate
from .security import hash_password, verify_password

logger = logging.getLogger(__name__)

SETTINGS_DOC_ID = "election"
ACTIVITY_GROUPS = ("year", "class", "house")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Candidates ---

def candidate_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name", ""),
        "position": doc.get("position", ""),
        "imageUrl": doc.get("imageUrl"),
        "bio": doc.get("bio"),
        "manifesto": doc.get("manifesto"),
        "votes": doc.get("votes", 0),
        "voterCategory": doc.get("voterCategory") or {"type": "all", "values": []},
    }


def list_candidates(db: Database) -> List[Dict[str, Any]]:
    cursor = db[CANDIDATES_COLLECTION].find({}).sort([("position", ASCENDING), ("name", ASCENDING)])
    return [candidate_out(c) for c in cursor]


def create_candidate(db: Database, candidate: CandidateIn) -> Dict[str, Any]:
    data = candidate.model_dump()
    data["votes"] = 0
    result = db[CANDIDATES_COLLECTION].insert_one(data)
    created = db[CANDIDATES_COLLECTION].find_one({"_id": result.inserted_id})
    logger.info(f"Candidate {created['name']} created for {created['position']}")
    return candidate_out(created)


def update_candidate(db: Database, candidate_id: str, update: CandidateUpdate) -> Optional[Dict[str, Any]]:
    """Raises bson.errors.InvalidId for malformed ids."""
    oid = ObjectId(candidate_id)
    changes = update.model_dump(exclude_unset=True)
    if changes:
        result = db[CANDIDATES_COLLECTION].update_one({"_id": oid}, {"$set": changes})
        if result.matched_count == 0:
            return None
    updated = db[CANDIDATES_COLLECTION].find_one({"_id": oid})
    return candidate_out(updated) if updated else None


def delete_candidate(db: Database, candidate_id: str) -> bool:
    result = db[CANDIDATES_COLLECTION].delete_one({"_id": ObjectId(candidate_id)})
    return result.deleted_count > 0


def voter_is_eligible(candidate: Dict[str, Any], voter: Dict[str, Any]) -> bool:
    category = candidate.get("voterCategory") or {}
    kind = category.get("type", "all")
    if kind == "all":
        return True
    return voter.get(kind) in (category.get("values") or [])


def ballot_for_voter(db: Database, voter: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Position name -> candidates this voter may choose from, positions in name order."""
    ballot: Dict[str, List[Dict[str, Any]]] = {}
    cursor = db[CANDIDATES_COLLECTION].find({}).sort([("position", ASCENDING), ("name", ASCENDING)])
    for doc in cursor:
        if voter_is_eligible(doc, voter):
            ballot.setdefault(doc.get("position", ""), []).append(candidate_out(doc))
    return ballot


# --- Voters ---

def voter_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "voterId": doc["_id"],
        "name": doc.get("name", ""),
        "year": doc.get("year"),
        "class": doc.get("class"),
        "house": doc.get("house"),
        "hasVoted": bool(doc.get("hasVoted", False)),
        "votedAt": doc.get("votedAt"),
    }


def get_voter(db: Database, voter_id: str) -> Optional[Dict[str, Any]]:
    return db[VOTERS_COLLECTION].find_one({"_id": voter_id})


def list_voters(db: Database) -> List[Dict[str, Any]]:
    return [voter_out(v) for v in db[VOTERS_COLLECTION].find({}).sort("_id", ASCENDING)]


def create_voter(db: Database, voter: VoterIn) -> Optional[Dict[str, Any]]:
    data = voter.model_dump(by_alias=True)
    data["_id"] = data.pop("voterId")
    data["hasVoted"] = False
    try:
        db[VOTERS_COLLECTION].insert_one(data)
    except DuplicateKeyError:
        logger.warning(f"Voter {data['_id']} already exists")
        return None
    logger.info(f"Voter {data['_id']} registered")
    return voter_out(data)


def delete_voter(db: Database, voter_id: str) -> bool:
    return db[VOTERS_COLLECTION].delete_one({"_id": voter_id}).deleted_count > 0


# --- Votes ---

def cast_ballot(db: Database, voter: Dict[str, Any], submission: VoteSubmission) -> Dict[str, Any]:
    """Record a complete ballot for the voter.

    Raises ValueError when the submission does not cover the voter's ballot
    exactly once per position, or when the voter has already voted.
    """
    ballot = ballot_for_voter(db, voter)
    abstained = {p for p, flag in submission.noneSelected.items() if flag}
    selections = submission.selections

    unknown = sorted((set(selections) | abstained) - set(ballot))
    if unknown:
        raise ValueError(f"Positions not on this ballot: {', '.join(unknown)}")

    conflicting = sorted(set(selections) & abstained)
    if conflicting:
        raise ValueError(f"Positions both selected and abstained: {', '.join(conflicting)}")

    missing = [p for p in ballot if p not in selections and p not in abstained]
    if missing:
        raise ValueError(f"Please make a selection for each position: {', '.join(missing)}")

    for position, candidate_id in selections.items():
        if candidate_id not in {c["id"] for c in ballot[position]}:
            raise ValueError(f"Candidate {candidate_id} is not on the ballot for {position}.")

    now = _now()
    # Flip hasVoted first so a concurrent second submission cannot pass
    claimed = db[VOTERS_COLLECTION].update_one(
        {"_id": voter["_id"], "hasVoted": {"$ne": True}},
        {"$set": {"hasVoted": True, "votedAt": now}},
    )
    if claimed.matched_count == 0:
        raise ValueError("Voter has already voted.")

    votes = []
    counted = []
    try:
        for position in ballot:
            candidate_id = selections.get(position)
            if candidate_id is not None:
                db[CANDIDATES_COLLECTION].update_one({"_id": ObjectId(candidate_id)}, {"$inc": {"votes": 1}})
                counted.append(candidate_id)
            votes.append({"voterId": voter["_id"], "position": position, "candidateId": candidate_id, "timestamp": now})
        if votes:
            db[VOTES_COLLECTION].insert_many(votes)
    except PyMongoError as e:
        logger.error(f"Ballot for voter {voter['_id']} failed part way, rolling back: {e}")
        _undo_ballot(db, voter["_id"], counted)
        raise

    logger.info(f"Ballot recorded for voter {voter['_id']} ({len(selections)} selections, {len(abstained)} abstentions)")
    return {
        "voterId": voter["_id"],
        "positions": len(ballot),
        "selections": len(selections),
        "abstentions": len(abstained),
        "timestamp": now,
    }


def _undo_ballot(db: Database, voter_id: str, counted: List[str]) -> None:
    for candidate_id in counted:
        db[CANDIDATES_COLLECTION].update_one({"_id": ObjectId(candidate_id)}, {"$inc": {"votes": -1}})
    db[VOTES_COLLECTION].delete_many({"voterId": voter_id})
    db[VOTERS_COLLECTION].update_one({"_id": voter_id}, {"$set": {"hasVoted": False, "votedAt": None}})


# --- Users ---

def user_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "username": doc["username"],
        "fullName": doc.get("fullName", ""),
        "email": doc.get("email"),
        "role": doc.get("role", "viewer"),
        "permissions": permissions_for(doc.get("role")),
    }


def create_user(db: Database, user: UserCreate) -> Optional[Dict[str, Any]]:
    if db[USERS_COLLECTION].find_one({"username": user.username}):
        logger.warning(f"User {user.username} already exists")
        return None
    data = user.model_dump(exclude={"password"})
    data["passwordHash"] = hash_password(user.password)
    try:
        result = db[USERS_COLLECTION].insert_one(data)
    except DuplicateKeyError:
        logger.warning(f"User {user.username} already exists")
        return None
    return user_out(db[USERS_COLLECTION].find_one({"_id": result.inserted_id}))


def list_users(db: Database) -> List[Dict[str, Any]]:
    return [user_out(u) for u in db[USERS_COLLECTION].find({}).sort("username", ASCENDING)]


def authenticate_user(db: Database, username: str, password: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    user = db[USERS_COLLECTION].find_one({"username": username})
    if not user or not verify_password(password, user.get("passwordHash", "")):
        return None, "Invalid username or password"
    return user, None


# --- Activity logs ---

def record_activity(
    db: Database,
    action: str,
    entity: str,
    entity_id: Optional[str] = None,
    details: str = "",
    user: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> str:
    entry: Dict[str, Any] = {
        "userId": str(user["_id"]) if user else user_id,
        "user": None,
        "action": action,
        "entity": entity,
        "entityId": entity_id,
        "details": details,
        "ipAddress": ip_address,
        "timestamp": _now(),
    }
    if user:
        entry["user"] = {
            "_id": str(user["_id"]),
            "username": user.get("username"),
            "fullName": user.get("fullName"),
            "role": {"name": user.get("role")} if user.get("role") else None,
        }
    result = db[LOGS_COLLECTION].insert_one(entry)
    return str(result.inserted_id)


def log_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    out["_id"] = str(doc["_id"])
    return out


def list_logs(db: Database) -> List[Dict[str, Any]]:
    return [log_out(d) for d in db[LOGS_COLLECTION].find({}).sort("timestamp", DESCENDING)]


def clear_logs(db: Database) -> int:
    deleted = db[LOGS_COLLECTION].delete_many({}).deleted_count
    logger.info(f"Cleared {deleted} activity log entries")
    return deleted


# --- Settings ---

def get_settings(db: Database) -> ElectionSettings:
    doc = db[SETTINGS_COLLECTION].find_one({"_id": SETTINGS_DOC_ID})
    if not doc:
        return ElectionSettings()
    doc = dict(doc)
    doc.pop("_id", None)
    # electionDate is stored as a datetime at midnight
    ed = doc.get("electionDate")
    if isinstance(ed, datetime):
        doc["electionDate"] = ed.date()
    return ElectionSettings(**doc)


def update_settings(db: Database, update: SettingsUpdate) -> ElectionSettings:
    changes = update.model_dump(exclude_unset=True)
    if "electionDate" in changes and changes["electionDate"] is not None:
        changes["electionDate"] = datetime.combine(changes["electionDate"], time.min, tzinfo=timezone.utc)
    if changes:
        db[SETTINGS_COLLECTION].update_one({"_id": SETTINGS_DOC_ID}, {"$set": changes}, upsert=True)
    return get_settings(db)


# --- Statistics ---

def _activity_series(db: Database, field: str) -> ActivitySeries:
    pipeline = [
        {"$match": {"hasVoted": True}},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]
    rows = list(db[VOTERS_COLLECTION].aggregate(pipeline))
    return ActivitySeries(
        labels=[str(r["_id"]) if r["_id"] is not None else "Unknown" for r in rows],
        data=[r["count"] for r in rows],
    )


def election_stats(db: Database) -> ElectionStats:
    total = db[VOTERS_COLLECTION].count_documents({})
    voted = db[VOTERS_COLLECTION].count_documents({"hasVoted": True})
    activity = {field: _activity_series(db, field) for field in ACTIVITY_GROUPS}
    return ElectionStats(
        totalVoters=total,
        votedCount=voted,
        remainingVoters=total - voted,
        participationRate=round(voted * 100.0 / total, 1) if total else 0.0,
        totalCandidates=db[CANDIDATES_COLLECTION].count_documents({}),
        votingActivity=VotingActivity(**activity),
    )

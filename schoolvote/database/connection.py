import logging
from functools import lru_cache

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from ..config import MONGO_DB, MONGO_URI

logger = logging.getLogger(__name__)

CANDIDATES_COLLECTION = "candidates"
VOTERS_COLLECTION = "voters"
VOTES_COLLECTION = "votes"
USERS_COLLECTION = "users"
LOGS_COLLECTION = "logs"
SETTINGS_COLLECTION = "settings"


@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    """One MongoClient per process; pymongo pools connections internally."""
    client = MongoClient(MONGO_URI, tz_aware=True)
    logger.info(f"MongoDB client created for database: {MONGO_DB}")
    return client


def get_database() -> Database:
    return get_client()[MONGO_DB]


def ensure_indexes(db: Database) -> None:
    db[USERS_COLLECTION].create_index("username", unique=True)
    db[CANDIDATES_COLLECTION].create_index([("position", ASCENDING), ("name", ASCENDING)])
    db[VOTES_COLLECTION].create_index([("voterId", ASCENDING), ("position", ASCENDING)], unique=True)
    db[LOGS_COLLECTION].create_index([("timestamp", DESCENDING)])
    logger.info("MongoDB indexes ensured")

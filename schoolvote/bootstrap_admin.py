"""Create the first admin account and re-hash any plaintext passwords.

Run once after deployment: ``python -m schoolvote.bootstrap_admin``.
"""
import logging

from pymongo.database import Database

from . import crud
from .config import ADMIN_PASSWORD, ADMIN_USERNAME
from .database.connection import USERS_COLLECTION, get_database
from .schemas import UserCreate
from .security import hash_password

logger = logging.getLogger(__name__)


def hash_existing_passwords(db: Database) -> int:
    hashed_count = 0
    for user in db[USERS_COLLECTION].find({}):
        # Skip if the password already looks like a bcrypt hash
        password = user.get("passwordHash")
        if password and not password.startswith("$2b$"):
            db[USERS_COLLECTION].update_one({"_id": user["_id"]}, {"$set": {"passwordHash": hash_password(password)}})
            logger.info(f"Hashed password for user {user.get('username')}")
            hashed_count += 1
    return hashed_count


def ensure_admin(db: Database, username: str, password: str, full_name: str = "Election Administrator"):
    existing = db[USERS_COLLECTION].find_one({"username": username})
    if existing:
        logger.info(f"Admin {username} already exists")
        return crud.user_out(existing)
    created = crud.create_user(db, UserCreate(username=username, fullName=full_name, password=password, role="admin"))
    logger.info(f"Created admin {username}")
    return created


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    db = get_database()
    hash_existing_passwords(db)
    if not ADMIN_PASSWORD:
        logger.error("ADMIN_PASSWORD is not set; skipping admin creation")
        return 1
    ensure_admin(db, ADMIN_USERNAME, ADMIN_PASSWORD)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

# schoolvote/config.py
# Central place for environment-driven settings and constants
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env")

# --- Database ---
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "school_election")

# --- Security & JWT ---
# In production, always set JWT_SECRET in the environment
SECRET_KEY = os.getenv("JWT_SECRET", "a_very_secret_key_for_dev_only")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- CORS ---
ALLOWED_ORIGINS = [
    "http://localhost:3000",  # For Create React App
    "http://localhost:5173",  # For Vite
]
if os.getenv("ALLOWED_ORIGIN"):
    ALLOWED_ORIGINS.append(os.environ["ALLOWED_ORIGIN"])

# --- Bootstrap admin ---
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# --- Client ---
DEFAULT_API_URL = "http://localhost:5000"
DEFAULT_STORE_PATH = "~/.schoolvote/storage.json"

# Ballot fetch is the only request with an explicit bound
BALLOT_FETCH_TIMEOUT = 15.0
NOTIFICATION_SECONDS = 3


def api_url() -> str:
    """Base URL the client talks to, read at call time."""
    return (os.getenv("VITE_API_URL") or DEFAULT_API_URL).rstrip("/")


def store_path() -> Path:
    return Path(os.getenv("SCHOOLVOTE_STORE", DEFAULT_STORE_PATH)).expanduser()

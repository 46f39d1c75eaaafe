# safeballot/config.py
# Central place for endpoints, storage settings and protocol constants
import os
from dotenv import load_dotenv

load_dotenv()

# --- Backing services ---
API_URL = os.getenv("SAFEBALLOT_API_URL", "http://localhost:8080/api").rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("SAFEBALLOT_REQUEST_TIMEOUT", "10"))

# --- Durable voter state ---
# memory | json | mongo
STORAGE_BACKEND = os.getenv("SAFEBALLOT_STORAGE", "json").lower()
STATE_DB_PATH = os.getenv("SAFEBALLOT_STATE_PATH", "data/voter_state.json")
# When set, the JSON state file is encrypted with the Fernet key kept here
STATE_KEY_FILE = os.getenv("SAFEBALLOT_STATE_KEY_FILE", "")

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "voting_system")
STATE_COLLECTION_NAME = "voter_state"

# --- Voter-scoped credentials ---
# In production, use secure, environment-variable-based secrets
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_for_dev_only")
ALGORITHM = "HS256"
VOTER_TOKEN_EXPIRE_MINUTES = 30

# --- Digital keys ---
FALLBACK_KEY_PREFIX = "SAFE-BALLOT"
FALLBACK_KEY_SEGMENT_LENGTH = 6
QUICK_BALLOT_KEY = "quick-auto-key"

# Request paths that open a ballot without verification
QUICK_ROUTE_PREFIXES = tuple(
    p.strip() for p in os.getenv("SAFEBALLOT_QUICK_ROUTES", "/quick-vote/").split(",") if p.strip()
)

DEFAULT_VOTER_NAME = "Registered Voter"

# Enables the "clear voter status" reset action
DEBUG_TOOLS = os.getenv("SAFEBALLOT_DEBUG", "0") == "1"

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "SAFEBALLOT_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if o.strip()
]

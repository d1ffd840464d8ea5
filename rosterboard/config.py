import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rosterboard.db")

# Identity provider used to introspect bearer tokens (e.g. https://<project>.supabase.co/auth/v1/user)
AUTH_USER_URL = os.getenv("AUTH_USER_URL")
AUTH_API_KEY = os.getenv("AUTH_API_KEY")

# Comma-separated list of emails allowed to use the API. Empty allows any verified user.
ALLOWED_EMAILS = [
    e.strip().lower() for e in os.getenv("ALLOWED_EMAILS", "").split(",") if e.strip()
]

# Frontend origins for CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")

# Sync Gateway (engine side)
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5001")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

# "preserve" keeps the first cancelledAt when a cancellation is edited, "refresh" restamps it
CANCELLED_AT_POLICY = os.getenv("CANCELLED_AT_POLICY", "preserve").lower()

# Move already-postponed siblings back when a later postponement step fails
POSTPONE_COMPENSATION = os.getenv("POSTPONE_COMPENSATION", "false").lower() == "true"

# Catalog label of the status that pairs an employee with a colleague
WITH_STATUS_LABEL = os.getenv("WITH_STATUS_LABEL", "With ...")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

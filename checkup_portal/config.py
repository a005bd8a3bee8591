"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Database ─────────────────────────────────────────────────────────
DB_URI = os.getenv("DB_URI", "sqlite:///checkup_portal.db")
SQLITE_BUSY_TIMEOUT_SECONDS = 15

# ── Roles ────────────────────────────────────────────────────────────
ROLE_PATIENT = "patient"
ROLE_DENTIST = "dentist"
ROLES = {ROLE_PATIENT, ROLE_DENTIST}

# ── Request lifecycle ────────────────────────────────────────────────
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"

# ── Result uploads ───────────────────────────────────────────────────
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_URL_PREFIX = "/uploads"
# Resource limit on images per result, not a domain rule.
MAX_RESULT_IMAGES = int(os.getenv("MAX_RESULT_IMAGES", "10"))
MAX_UPLOAD_BYTES = 16 * 1024 * 1024

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_ALGORITHM = "HS256"
TOKEN_EXPIRY_HOURS = 24


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value

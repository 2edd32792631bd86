# booking-backend/config.py

import os

from dotenv import load_dotenv

load_dotenv()

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sql_app.db")

# --- Scheduling rules ---
# Hosts without a configured timezone are treated as living here
DEFAULT_HOST_TIMEZONE = os.getenv("DEFAULT_HOST_TIMEZONE", "America/Los_Angeles")
SLOT_LOOKAHEAD_DAYS = int(os.getenv("SLOT_LOOKAHEAD_DAYS", "30"))
# Google Calendar FreeBusy rejects windows longer than ~3 months
EXTERNAL_LOOKAHEAD_MONTHS = int(os.getenv("EXTERNAL_LOOKAHEAD_MONTHS", "3"))
BOOKING_LOOKAHEAD_MONTHS = int(os.getenv("BOOKING_LOOKAHEAD_MONTHS", "12"))
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "30"))

# --- Google OAuth ---
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_PROJECT_ID = os.getenv("GOOGLE_PROJECT_ID", "your-default-project-id")
REDIRECT_URI = os.getenv("REDIRECT_URI", "http://localhost:8000/auth/google/callback")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Fernet key for OAuth credentials at rest
# (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")
if not TOKEN_ENCRYPTION_KEY:
    import warnings

    from cryptography.fernet import Fernet

    warnings.warn(
        "TOKEN_ENCRYPTION_KEY not set! Using a per-process key - stored Google credentials "
        "will not survive a restart. DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    TOKEN_ENCRYPTION_KEY = Fernet.generate_key().decode()

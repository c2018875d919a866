import os
from dotenv import load_dotenv
import logging

load_dotenv()

# Public URL of the dashboard; used for CORS and WebSocket origins
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")
CORS_ORIGINS = [
    origin.strip().rstrip("/")
    for origin in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

# JWT configuration (HS256 shared secret)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))

# Service request workflow
REQUEST_TTL_HOURS = int(os.getenv("REQUEST_TTL_HOURS", "24"))
MAX_PROPOSALS_PER_TECHNICIAN = int(os.getenv("MAX_PROPOSALS_PER_TECHNICIAN", "3"))
MIN_PROPOSAL_SPACING_MINUTES = int(os.getenv("MIN_PROPOSAL_SPACING_MINUTES", "30"))
WORKING_HOURS_START = int(os.getenv("WORKING_HOURS_START", "6"))
WORKING_HOURS_END = int(os.getenv("WORKING_HOURS_END", "18"))
# A technician is busy from N hours before to N hours after each scheduled job
SCHEDULE_CONFLICT_WINDOW_HOURS = int(os.getenv("SCHEDULE_CONFLICT_WINDOW_HOURS", "3"))
# Working hours are evaluated in this zone; timestamps are stored as naive UTC
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "UTC")

# Periodic sweep of stale pending requests (0 disables the background task)
EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "300"))

# Startup seeding
SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "true").lower() == "true"
SEED_ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@myhometech.com")
SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "")

# Use basic logging here since logging_config may not be loaded yet
_config_logger = logging.getLogger("myhometech.config")

if JWT_SECRET == "change-me-in-production":
    _config_logger.warning("JWT_SECRET is not set. Tokens are signed with an insecure default secret.")

if SEED_ON_STARTUP and not SEED_ADMIN_PASSWORD:
    _config_logger.warning("SEED_ADMIN_PASSWORD is not set. The admin account will not be seeded.")

if WORKING_HOURS_START >= WORKING_HOURS_END:
    raise ValueError(
        f"WORKING_HOURS_START ({WORKING_HOURS_START}) must be before WORKING_HOURS_END ({WORKING_HOURS_END})"
    )

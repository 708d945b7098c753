import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon_scheduler.db")

# Salon defaults - each salon row may override these
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Los_Angeles")
DEFAULT_SLOT_GRANULARITY_MINUTES = int(os.getenv("DEFAULT_SLOT_GRANULARITY_MINUTES", "30"))
DEFAULT_MINIMUM_LEAD_MINUTES = int(os.getenv("DEFAULT_MINIMUM_LEAD_MINUTES", "0"))
# Used for waitlist estimates when a walk-in did not pick a service
DEFAULT_WAIT_MINUTES_PER_PARTY = int(os.getenv("DEFAULT_WAIT_MINUTES_PER_PARTY", "15"))

# How far ahead recurring series are turned into appointments
RECURRING_DAYS_AHEAD = int(os.getenv("RECURRING_DAYS_AHEAD", "30"))

# Redis (rate limiting + ARQ event dispatch)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Rate limiting for the public booking page and kiosks
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
PUBLIC_RATE_LIMIT_PER_MINUTE = int(os.getenv("PUBLIC_RATE_LIMIT_PER_MINUTE", "60"))

# Frontend origins (dashboard, public booking page, kiosk)
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")

import json
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "beds24"
PROVIDER = "beds24"

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Beds24 API
BEDS24_BASE_URL = os.getenv("BEDS24_BASE_URL", "https://api.beds24.com/v2").rstrip("/")
if not BEDS24_BASE_URL.startswith("https://"):
    raise ValueError("BEDS24_BASE_URL must use https")

BEDS24_DEVICE_NAME = os.getenv("BEDS24_DEVICE_NAME", "sync-beds24")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))
MAX_RETRIES = int(os.getenv("BEDS24_MAX_RETRIES", "2"))

# Token sources, tried in this order after the in-process cache
BEDS24_READ_TOKEN = os.getenv("BEDS24_READ_TOKEN") or os.getenv("BEDS24_API_TOKEN")
BEDS24_TOKEN_SERVICE_URL = os.getenv("BEDS24_TOKEN_SERVICE_URL")
BEDS24_TOKEN_SERVICE_KEY = os.getenv("BEDS24_TOKEN_SERVICE_KEY")
BEDS24_WRITE_REFRESH_TOKEN = os.getenv("BEDS24_WRITE_REFRESH_TOKEN")

TOKEN_EXPIRY_BUFFER_SECONDS = 5 * 60
TOKEN_EXPIRING_WINDOW_SECONDS = int(os.getenv("TOKEN_EXPIRING_WINDOW_SECONDS", "1800"))

CREDENTIALS_ENCRYPTION_KEY = os.getenv("CREDENTIALS_ENCRYPTION_KEY")

# Credit budget (per 5-minute window)
RATE_LIMIT_THRESHOLD = int(os.getenv("RATE_LIMIT_THRESHOLD", "50"))
MAX_BACKOFF_SECONDS = 300

# Sync behaviour
CALENDAR_BATCH_SIZE = int(os.getenv("CALENDAR_BATCH_SIZE", "50"))
CALENDAR_BATCH_RETRIES = int(os.getenv("CALENDAR_BATCH_RETRIES", "2"))
INVENTORY_CACHE_TTL_HOURS = int(os.getenv("INVENTORY_CACHE_TTL_HOURS", "6"))
BOOTSTRAP_CALENDAR_DAYS = int(os.getenv("BOOTSTRAP_CALENDAR_DAYS", "30"))
STALE_SYNC_MINUTES = int(os.getenv("STALE_SYNC_MINUTES", "30"))

# Beds24 drops refresh tokens that go unused for 30 days
KEEP_ALIVE_IDLE_DAYS = int(os.getenv("KEEP_ALIVE_IDLE_DAYS", "20"))
KEEP_ALIVE_DELAY_SECONDS = float(os.getenv("KEEP_ALIVE_DELAY_SECONDS", "1"))

# Inbound webhook Basic auth
WEBHOOK_USERNAME = os.getenv("WEBHOOK_USERNAME")
WEBHOOK_PASSWORD = os.getenv("WEBHOOK_PASSWORD")

LOG_REDACT_KEYS: list[str] = json.loads(
    os.getenv(
        "LOG_REDACT_KEYS",
        '["token", "authorization", "email", "phone", "mobile", "firstName", "lastName", "address", "guests"]',
    )
)

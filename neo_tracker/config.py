import os

NASA_API_KEY = os.getenv("NASA_API_KEY", "DEMO_KEY")
NASA_NEO_BASE = os.getenv("NASA_NEO_BASE", "https://api.nasa.gov/neo/rest/v1")
FEED_TIMEOUT_SECONDS = float(os.getenv("FEED_TIMEOUT_SECONDS", "10"))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./neo_tracker.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# days ahead of "today" that count as an upcoming close approach
NOTIFICATION_WINDOW_DAYS = int(os.getenv("NOTIFICATION_WINDOW_DAYS", "7"))
INGEST_INTERVAL_HOURS = int(os.getenv("INGEST_INTERVAL_HOURS", "1"))

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

RISK_THRESHOLDS = {
    "CRITICAL": 80,
    "HIGH": 60,
    "MEDIUM": 40,
}

DISTANCE_THRESHOLDS_KM = {
    "VERY_CLOSE": 1_000_000,
    "CLOSE": 5_000_000,
    "MODERATE": 10_000_000,
}

DIAMETER_THRESHOLDS_KM = {
    "LARGE": 1.0,
    "MEDIUM": 0.5,
    "SMALL": 0.1,
}

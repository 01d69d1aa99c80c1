import os
from dotenv import load_dotenv
from pathlib import Path

# Go up one level from newsfeed/ to root/
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Storage
DB_URL = os.getenv("DB_URL", "sqlite:///newsfeed.db")

# Scheduler / ingestion
TIMEZONE = os.getenv("TIMEZONE", "UTC")
SCHEDULER_ENABLED = _flag("SCHEDULER_ENABLED")
INGEST_INTERVAL_HOURS = int(os.getenv("INGEST_INTERVAL_HOURS", "24"))
INGEST_MAX_ARTICLES = int(os.getenv("INGEST_MAX_ARTICLES", "20"))
TRENDING_REFRESH_MINUTES = int(os.getenv("TRENDING_REFRESH_MINUTES", "30"))
TRENDING_WINDOW_HOURS = int(os.getenv("TRENDING_WINDOW_HOURS", "24"))
TRENDING_LIMIT = int(os.getenv("TRENDING_LIMIT", "10"))
NEWSAPI_KEY = os.getenv("NEWSAPI_KEY", "")
NEWSAPI_BASE_URL = os.getenv("NEWSAPI_BASE_URL", "https://newsapi.org/v2/")
NEWS_COUNTRY = os.getenv("NEWS_COUNTRY", "us")
NEWS_CATEGORIES = [
    c.strip()
    for c in os.getenv("NEWS_CATEGORIES", "general,technology,business,science,sports,health,entertainment").split(",")
    if c.strip()
]
# Ingested articles are posted under this account
SYSTEM_USER_ID = int(os.getenv("SYSTEM_USER_ID", "1"))

# Ranking
FRESHNESS_HORIZON_HOURS = float(os.getenv("FRESHNESS_HORIZON_HOURS", "72"))
POPULARITY_SATURATION = float(os.getenv("POPULARITY_SATURATION", "0.5"))
FACTOR_THRESHOLD = float(os.getenv("FACTOR_THRESHOLD", "0.3"))
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
SCORING_WORKERS = int(os.getenv("SCORING_WORKERS", "4"))
# Below this many candidates scoring stays on the request thread
PARALLEL_SCORING_MIN = int(os.getenv("PARALLEL_SCORING_MIN", "200"))
INTEREST_UPDATE_RETRIES = int(os.getenv("INTEREST_UPDATE_RETRIES", "8"))

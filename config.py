import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # --- MongoDB Settings ---
    MONGO_URI = os.getenv("MONGO_URI")
    DB_NAME = os.getenv("DB_NAME", "campuslink") # Defaults to campuslink, can be overridden in .env

    # --- Environment ---
    ENV = os.getenv("ENV", "development") # "development", "production" or "testing"
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # --- Security Settings ---
    # In production, ALWAYS set this in .env. Never use the fallback.
    SECRET_KEY = os.getenv("SECRET_KEY")
    if ENV == "production" and not SECRET_KEY:
        raise ValueError("SECRET_KEY environment variable is mandatory in production!")
    elif not SECRET_KEY:
        SECRET_KEY = "dev_secret_key_change_in_prod"
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7 # 7 Days

    # --- Notification Lifecycle ---
    NOTIFICATION_SWEEP_INTERVAL_SECONDS = int(os.getenv("NOTIFICATION_SWEEP_INTERVAL_SECONDS", 3600))
    NOTIFICATION_TTL_DAYS = int(os.getenv("NOTIFICATION_TTL_DAYS", 7))
    NOTIFICATION_VIEWED_TTL_DAYS = int(os.getenv("NOTIFICATION_VIEWED_TTL_DAYS", 3))
    # Change streams need a replica set; turn off for standalone servers
    NOTIFICATION_CHANGE_FEED = _flag("NOTIFICATION_CHANGE_FEED")

    # Sweeper + change-feed listener are started by the app lifespan
    BACKGROUND_TASKS = _flag("BACKGROUND_TASKS")

config = Config()

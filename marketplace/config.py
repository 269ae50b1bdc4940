# marketplace/config.py
import os
from dotenv import load_dotenv

load_dotenv()

def _as_bool(val: str | None, default=False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}

class Config:
    # --- Core ---
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    APP_VERSION = os.getenv("APP_VERSION")
    JSON_SORT_KEYS = False

    # DB
    SQLALCHEMY_DATABASE_URI = (
        os.getenv("SQLALCHEMY_DATABASE_URI")
        or os.getenv("DATABASE_URL")
        or "sqlite:///marketplace.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Pool checkout timeout; an expired wait surfaces as a Transient error
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "10"))

    # --- Mail ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _as_bool(os.getenv("MAIL_USE_TLS", "1"))
    MAIL_USE_SSL = _as_bool(os.getenv("MAIL_USE_SSL", "0"))  # don't enable together with TLS
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME)
    MAIL_SUPPRESS_SEND = _as_bool(os.getenv("MAIL_SUPPRESS_SEND", "0"))

    # --- Uploads (resumes) ---
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "instance/uploads")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(5 * 1024 * 1024)))  # 5MB
    ALLOWED_EXTENSIONS = {"pdf", "doc", "docx", "odt", "rtf", "txt"}

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_FILENAME = os.getenv("LOG_FILENAME", "marketplace.log")
    LOG_JSON = _as_bool(os.getenv("LOG_JSON", "0"))

    # --- Sentry ---
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0"))

    # --- Events ---
    # kafka | inline | memory
    # inline sends notification mail inside the request that changed the task; task_posted
    # goes to every user, so deployments with many users should run kafka plus worker.py
    EVENT_BACKEND = os.getenv("EVENT_BACKEND", "inline")
    KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_CLIENT_ID = os.getenv("KAFKA_CLIENT_ID", "marketplace")
    KAFKA_GROUP_ID = os.getenv("KAFKA_GROUP_ID", "marketplace-notifications")
    KAFKA_TIMEOUT_SECONDS = float(os.getenv("KAFKA_TIMEOUT_SECONDS", "5"))

    # --- Entity cache ---
    ENTITY_CACHE_TTL = int(os.getenv("ENTITY_CACHE_TTL", "300"))
    ENTITY_CACHE_MAX_ENTRIES = int(os.getenv("ENTITY_CACHE_MAX_ENTRIES", "1024"))

    # --- Session cookies ---
    SESSION_COOKIE_SECURE = _as_bool(os.getenv("SESSION_COOKIE_SECURE", "1"))
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    EVENT_BACKEND = "memory"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@marketplace.test"
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = "WARNING"

import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'doodl.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    ENRICHMENT_ENABLED = os.environ.get("ENRICHMENT_ENABLED", "1") == "1"
    ENRICHMENT_INLINE = os.environ.get("ENRICHMENT_INLINE", "0") == "1"
    METADATA_FETCH_TIMEOUT = float(os.environ.get("METADATA_FETCH_TIMEOUT", "8"))
    METADATA_MAX_BYTES = int(os.environ.get("METADATA_MAX_BYTES", "65536"))
    METADATA_USER_AGENT = os.environ.get(
        "METADATA_USER_AGENT",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    )
    FAVICON_SERVICE_URL = os.environ.get(
        "FAVICON_SERVICE_URL",
        "https://www.google.com/s2/favicons?domain={hostname}&sz=64",
    )
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")
    AUTH_BRIDGE_SECRET = os.environ.get("AUTH_BRIDGE_SECRET", "")
    MAX_API_KEYS_PER_USER = int(os.environ.get("MAX_API_KEYS_PER_USER", "3"))
    API_KEY_PREFIX = os.environ.get("API_KEY_PREFIX", "doodl_")
    CORS_ALLOW_ORIGIN = os.environ.get("CORS_ALLOW_ORIGIN", "*")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    ENRICHMENT_INLINE = True
    AUTH_BRIDGE_SECRET = "test-bridge-secret"

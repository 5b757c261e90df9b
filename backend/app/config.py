import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        return default


class Config:
    # Base directory of the backend (one level above this `app` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    ENV_NAME = (os.getenv("INVENTORY_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "")

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "inventory.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or ""
    DATABASE_URL_PROVIDED = bool(_db_url.strip())
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url or f"sqlite:///{_default_sqlite_path}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_TTL_SECONDS = _int_env("JWT_TTL_SECONDS", 60 * 60 * 24)

    # Flask enforces this on request bodies (CSV uploads).
    MAX_CONTENT_LENGTH = _int_env("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)

    LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").upper()

    # CORS: comma-separated origins for the dashboard build
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    COMPANY_NAME = os.getenv("COMPANY_NAME", "Inventory Management System")
    COMPANY_ADDRESS = os.getenv("COMPANY_ADDRESS", "123 Business St, City, State 12345")


class TestConfig(Config):
    TESTING = True
    ENV_NAME = "test"
    SECRET_KEY = "test-secret-key-0123456789abcdef-inventory"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DATABASE_URL_PROVIDED = True
    LOG_LEVEL = "WARNING"

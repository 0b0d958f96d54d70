"""
Environment-aware configuration.
Secrets, token lifetimes, cookie settings and the database URL all come from
the environment (.env is read if present).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///celebrity-persona.db")

    # Access and refresh tokens are signed with different keys
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", str(30 * 24 * 3600))))
    ROTATE_REFRESH_TOKENS = _env_bool("ROTATE_REFRESH_TOKENS", False)

    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    REFRESH_COOKIE_SECURE = _env_bool("REFRESH_COOKIE_SECURE", False)
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/")

    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    PASSWORD_RESET_EXPIRES = timedelta(seconds=int(os.getenv("PASSWORD_RESET_EXPIRES_SECONDS", "900")))
    # No mail delivery here: outside production the reset token comes back in the response
    RESET_TOKEN_IN_RESPONSE = _env_bool("RESET_TOKEN_IN_RESPONSE", True)

    SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "superadmin@celebritypersona.com")
    SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD")
    SUPERADMIN_NAME = os.getenv("SUPERADMIN_NAME", "SuperAdmin")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_ACCESS_SECRET = "testing-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "testing-refresh-secret-0123456789abcdef"
    ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
    REFRESH_TOKEN_EXPIRES = timedelta(days=30)
    ROTATE_REFRESH_TOKENS = False
    PASSWORD_RESET_EXPIRES = timedelta(minutes=15)
    RESET_TOKEN_IN_RESPONSE = True
    SUPERADMIN_EMAIL = "root@celebritypersona.test"
    SUPERADMIN_PASSWORD = "root-password-123"
    LOG_LEVEL = "DEBUG"


class ProductionConfig(BaseConfig):
    DEBUG = False
    REFRESH_COOKIE_SECURE = _env_bool("REFRESH_COOKIE_SECURE", True)
    RESET_TOKEN_IN_RESPONSE = _env_bool("RESET_TOKEN_IN_RESPONSE", False)

    @classmethod
    def validate(cls):
        if cls.JWT_ACCESS_SECRET == DEV_ACCESS_SECRET or cls.JWT_REFRESH_SECRET == DEV_REFRESH_SECRET:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set in production")
        if cls.JWT_ACCESS_SECRET == cls.JWT_REFRESH_SECRET:
            raise RuntimeError("access and refresh tokens must use different secrets")


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        ProductionConfig.validate()
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig

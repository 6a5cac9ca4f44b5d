import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as sessions.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "sessions.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cookie names
    BROWSER_ID_COOKIE_NAME = os.getenv("BROWSER_ID_COOKIE_NAME", "browser_id")
    SESSION_COOKIE_NAME_AUTH = os.getenv("SESSION_COOKIE_NAME_AUTH", "user_session")
    PARENT_SESSION_COOKIE_NAME = os.getenv("PARENT_SESSION_COOKIE_NAME", "parent_user_session")

    # Non-persistent sessions die after 12 hours without a request
    SESSION_INACTIVITY_TIMEOUT_SECONDS = int(
        os.getenv("SESSION_INACTIVITY_TIMEOUT_SECONDS", str(12 * 60 * 60))
    )

    # "Remember me" sessions last 60 days
    PERSISTENT_SESSION_LENGTH_SECONDS = int(
        os.getenv("PERSISTENT_SESSION_LENGTH_SECONDS", str(60 * 24 * 60 * 60))
    )

    # Sudo window after password re-entry: 10 minutes
    SUDO_SESSION_TIMEOUT_SECONDS = int(os.getenv("SUDO_SESSION_TIMEOUT_SECONDS", str(10 * 60)))

    SESSION_TOKEN_LENGTH = int(os.getenv("SESSION_TOKEN_LENGTH", "64"))
    EXTEND_SESSION_EXPIRY_ON_TOUCH = _env_bool("EXTEND_SESSION_EXPIRY_ON_TOUCH", False)

    # When true a failing event handler is logged instead of aborting the request
    SESSION_EVENTS_ISOLATE_ERRORS = _env_bool("SESSION_EVENTS_ISOLATE_ERRORS", False)

    # Cookie defaults for Flask's own session cookie
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", False)

    # Basic app settings
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SEED_ROLES_ON_STARTUP = False
    BCRYPT_ROUNDS = 4

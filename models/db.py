from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow() -> datetime:
    # Columns are naive DateTime holding UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)

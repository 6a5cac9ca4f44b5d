from sqlalchemy.orm import validates

from models.db import db, utcnow

class SessionRecord(db.Model):
    __tablename__ = "session_records"
    __table_args__ = (
        db.Index("ix_session_records_user", "user_type", "user_id"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # stable per browser install, issued by SessionBinding.ensure_browser_id
    browser_id = db.Column(db.String(64), nullable=True, index=True)

    # store only hashed token in DB (never store raw token)
    token_hash = db.Column(db.String(64), nullable=False, index=True)

    # polymorphic principal: both null for anonymous/system sessions
    user_type = db.Column(db.String(64), nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    # set only on impersonation sessions
    parent_id = db.Column(db.Integer, db.ForeignKey("session_records.id"), nullable=True)

    active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    login_at = db.Column(db.DateTime, nullable=True)
    login_ip = db.Column(db.String(64), nullable=True)
    login_ip_country = db.Column(db.String(2), nullable=True)
    host = db.Column(db.String(255), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    last_activity_at = db.Column(db.DateTime, nullable=True)
    last_activity_ip = db.Column(db.String(64), nullable=True)
    last_activity_ip_country = db.Column(db.String(2), nullable=True)
    last_activity_path = db.Column(db.String(255), nullable=True)
    requests = db.Column(db.Integer, default=0, nullable=False)

    # null means a browser-session cookie governed by the inactivity timeout
    expires_at = db.Column(db.DateTime, nullable=True)

    password_seen_at = db.Column(db.DateTime, nullable=True)

    two_factored_at = db.Column(db.DateTime, nullable=True)
    two_factored_ip = db.Column(db.String(64), nullable=True)
    two_factored_ip_country = db.Column(db.String(2), nullable=True)
    skip_two_factor = db.Column(db.Boolean, default=False, nullable=False)

    data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    parent = db.relationship("SessionRecord", remote_side=[id])

    @validates("user_agent", "last_activity_path")
    def _shorten(self, key, value):
        if isinstance(value, str):
            return value[:255]
        return value

    @property
    def user_ref(self):
        """(type, id) pair of the principal, or None for anonymous sessions."""
        if self.user_type is None or self.user_id is None:
            return None
        return (self.user_type, self.user_id)

    def __repr__(self) -> str:
        return f"<SessionRecord id={self.id} browser={self.browser_id} active={self.active}>"

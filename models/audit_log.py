from models.db import db, utcnow

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # nullable for anonymous / system sessions
    session_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(80), nullable=False)  # e.g. SESSION_START, SESSION_INVALIDATED

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

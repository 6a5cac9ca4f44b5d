from models import db
from models.user import Role

DEFAULT_ROLES = ["USER", "ADMIN", "SUPER_ADMIN"]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    if missing:
        db.session.commit()

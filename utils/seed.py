from flask import current_app

from models import db
from models.user import Role

# RENTER books and bargains; ADMIN counters, inspects and settles
DEFAULT_ROLES = ("RENTER", "ADMIN", "SUPER_ADMIN")

def seed_roles() -> int:
    existing = {r.name for r in Role.query.all()}
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    db.session.commit()
    if missing:
        current_app.logger.info("Seeded roles: %s", ", ".join(missing))
    return len(missing)

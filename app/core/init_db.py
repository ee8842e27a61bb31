import logging

from sqlalchemy.orm import Session

from app.core.database import Base, engine
from app.models import models

logger = logging.getLogger("library")


def create_tables():
    Base.metadata.create_all(bind=engine)


def seed_roles(db: Session):
    existing = {r.name for r in db.query(models.Role).all()}
    for name in (models.ROLE_ADMIN, models.ROLE_USER):
        if name not in existing:
            db.add(models.Role(name=name))
            logger.info(f"Seeded role {name}")
    db.commit()

import logging
import os

from sqlalchemy.orm import Session

from propertyhub.app.core.security import get_password_hash
from propertyhub.app.models.user import User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_USERS = [
    ("admin@propertyhub.test", UserRole.ADMIN),
    ("agent@propertyhub.test", UserRole.AGENT),
]


def ensure_default_dev_admin(db: Session) -> None:
    """
    Create default staff users for local development if they do not exist.
    Skips execution when running under pytest or outside development.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return
    if os.getenv("ENVIRONMENT", "development") != "development":
        return

    created = False
    for email, role in DEFAULT_DEV_USERS:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            continue

        user = User(
            email=email,
            hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
            role=role.value,
            is_active=True,
        )
        db.add(user)
        created = True

    if created:
        db.commit()
        logger.info("Seeded default development users")

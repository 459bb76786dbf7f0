"""
Local user records mirrored from Clerk
"""
from typing import Optional

from sqlalchemy.orm import Session

from tavlo.core.logging_config import LoggingConfig
from tavlo.models.user import User

logger = LoggingConfig.get_logger(__name__)


def get_or_create_user(db: Session, clerk_id: str, email: Optional[str] = None) -> User:
    """Local user for a Clerk id, created on first sight"""
    user = db.query(User).filter(User.clerk_id == clerk_id).first()
    if user is not None:
        return user
    user = User(clerk_id=clerk_id, email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user", extra={"user_id": str(user.id)})
    return user


def upsert_user(db: Session, clerk_id: str, email: Optional[str]) -> User:
    user = db.query(User).filter(User.clerk_id == clerk_id).first()
    if user is None:
        user = User(clerk_id=clerk_id, email=email)
        db.add(user)
    else:
        user.email = email
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, clerk_id: str) -> bool:
    """Delete a user and everything they own; False if no such user"""
    user = db.query(User).filter(User.clerk_id == clerk_id).first()
    if user is None:
        return False
    db.delete(user)
    db.commit()
    logger.info("Deleted user", extra={"clerk_id": clerk_id})
    return True


def get_first_user(db: Session) -> Optional[User]:
    """Oldest user; quick-add saves on their behalf"""
    return db.query(User).order_by(User.created_at.asc()).first()

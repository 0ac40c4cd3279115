"""
Identity Store

Registration, login and profile management. Points and report counters are
not touched here; they belong to the ledger.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import or_
from sqlalchemy.orm import Session

import models
from errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    UserNotFoundError,
    ValidationFailedError,
)
from policy import is_admin
from security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "organization", "location")


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def get_user(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise UserNotFoundError()
    return user


def register_user(db: Session, data) -> models.User:
    existing = db.query(models.User).filter(
        or_(models.User.email == data.email, models.User.username == data.username)
    ).first()
    if existing:
        raise ConflictError()

    db_user = models.User(
        username=data.username,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        organization=data.organization,
        location=data.location,
        is_active=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("Registered user %s with role %s", db_user.id, db_user.role.value)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> models.User:
    user = get_user_by_email(db, email=email)
    if not user:
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    if not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: models.User, fields: Dict[str, Any]) -> models.User:
    for name in PROFILE_FIELDS:
        if name in fields and fields[name] is not None:
            setattr(user, name, fields[name])
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: models.User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise ValidationFailedError("Current password is incorrect")
    user.hashed_password = get_password_hash(new_password)
    db.commit()


def set_user_active(db: Session, actor: models.User, user_id: int, active: bool) -> models.User:
    """
    Activate or deactivate an account.

    Admins cannot change their own account, and only government users may
    change another ngo or government account.
    """
    if not is_admin(actor):
        raise ForbiddenError("Access denied. Required roles: ngo, government")
    if user_id == actor.id:
        raise ValidationFailedError("Cannot deactivate your own account")

    user = get_user(db, user_id)
    if is_admin(user) and actor.role != models.UserRole.government:
        raise ForbiddenError("Only government users can deactivate NGO accounts")

    user.is_active = active
    db.commit()
    db.refresh(user)
    logger.info("User %s %s by user %s", user.id, "activated" if active else "deactivated", actor.id)
    return user


def get_public_profile(db: Session, user_id: int) -> Dict[str, Any]:
    user = get_user(db, user_id)
    if not user.is_active:
        raise UserNotFoundError("User account is deactivated")

    recent = (
        db.query(models.Report)
        .filter(models.Report.reporter_id == user.id)
        .order_by(models.Report.created_at.desc(), models.Report.id.desc())
        .limit(5)
        .all()
    )
    return {"user": user, "recent_reports": recent}


def ensure_admin(db: Session, email: str, username: str, password: str) -> models.User:
    """Create the bootstrap government account if it does not exist yet."""
    admin = get_user_by_email(db, email=email)
    if admin:
        return admin

    admin = models.User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        first_name="Platform",
        last_name="Administrator",
        role=models.UserRole.government,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin user '%s' created", email)
    return admin

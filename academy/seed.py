"""
Academy Admin - Database Seed Script

Creates the first super admin so that invitations can be issued.

Usage:
    academy-seed --username admin --email admin@academy.local --name Administrator
    (password is read from ACADEMY_SEED_PASSWORD or prompted)
"""

import argparse
import getpass
import logging
import os
from typing import Optional

from sqlmodel import Session, select

from academy.auth.clock import utcnow
from academy.auth.database import get_engine, init_db
from academy.auth.models import User
from academy.auth.roles import Role
from academy.auth.validation import (
    check_password,
    normalize_email,
    normalize_name,
    normalize_username,
)
from academy.config import settings


logger = logging.getLogger(__name__)

SEED_PASSWORD_MIN_LENGTH = 8


def seed_super_admin(
    db: Session,
    username: str,
    email: str,
    name: str,
    password: str,
) -> Optional[User]:
    """
    Create a super admin unless the username or email is already taken.

    Returns:
        The new user, or None if nothing was created
    """
    email = normalize_email(email)
    username = normalize_username(username)
    name = normalize_name(name)
    check_password(password, SEED_PASSWORD_MIN_LENGTH)

    existing = db.exec(
        select(User).where((User.email == email) | (User.username == username))
    ).first()
    if existing:
        logger.info("User %s already exists, skipping seed", existing.username)
        return None

    now = utcnow()
    user = User(
        username=username,
        email=email,
        name=name,
        password_hash="",
        role=Role.SUPER_ADMIN,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    user.set_password(password)
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Created super admin %s (%s)", user.username, user.id)
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the initial super admin account")
    parser.add_argument("--username", default="admin")
    parser.add_argument("--email", default="admin@academy.local")
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(message)s")

    password = os.environ.get("ACADEMY_SEED_PASSWORD") or getpass.getpass("Password: ")

    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    try:
        with Session(engine) as db:
            user = seed_super_admin(db, args.username, args.email, args.name, password)
    finally:
        engine.dispose()

    if user:
        print(f"Super admin created: {user.username} <{user.email}>")
    else:
        print("A user with that username or email already exists.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Academy Admin - Credential Hashing

bcrypt hashes for user passwords. The work factor is read from
``settings.BCRYPT_WORK_FACTOR`` at hash time, so raising it upgrades
accounts one sign-in at a time (see ``needs_rehash``).
"""

from typing import Optional

import bcrypt

from academy.config import settings


# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_WORK_FACTOR)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False for a wrong password and for anything that is not a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_rehash(hashed_password: str, target_work_factor: Optional[int] = None) -> bool:
    """
    Whether a stored hash was made with a lower cost than the configured one.

    Unparseable hashes always need rehashing.
    """
    if target_work_factor is None:
        target_work_factor = settings.BCRYPT_WORK_FACTOR
    try:
        # $2b$<cost>$<salt+digest>
        cost = hashed_password.split("$")[2]
        return int(cost) < target_work_factor
    except (ValueError, IndexError):
        return True


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > BCRYPT_MAX_BYTES

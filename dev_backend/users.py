"""
In-memory admin users for the development backend. Passwords stored as bcrypt hashes.
"""
import logging
import threading
from dataclasses import dataclass

import bcrypt

from dev_backend.config import SEED_EMAIL, SEED_PASSWORD

logger = logging.getLogger(__name__)


@dataclass
class User:
    id: int
    email: str
    password_hash: str
    is_active: bool = True


_users: dict[str, User] = {}
_lock = threading.Lock()


def hash_password(password: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = password.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")[:72]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def add_user(email: str, password: str) -> User:
    """Create or replace the user with this email."""
    key = email.strip().lower()
    with _lock:
        existing = _users.get(key)
        user_id = existing.id if existing else len(_users) + 1
        user = User(id=user_id, email=key, password_hash=hash_password(password))
        _users[key] = user
    return user


def get_user(email: str) -> User | None:
    return _users.get(email.strip().lower())


def get_user_by_id(user_id: int) -> User | None:
    return next((u for u in _users.values() if u.id == user_id), None)


def authenticate(email: str, password: str) -> User | None:
    user = get_user(email)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def seed_from_env() -> None:
    """Create the seed admin from env if set."""
    if SEED_EMAIL and SEED_PASSWORD:
        if get_user(SEED_EMAIL) is None:
            add_user(SEED_EMAIL, SEED_PASSWORD)
            logger.info("Seeded admin user: %s", SEED_EMAIL)
        else:
            logger.debug("Admin user already exists: %s", SEED_EMAIL)

"""Authentication service: password hashing, registration and credential checks."""

import bcrypt
from sqlalchemy.orm import Session

from .models import User


class DuplicateUserError(Exception):
    """An account with this email already exists."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def register_user(db: Session, email: str, password: str, name: str = "") -> User:
    """Create a requester account. Raises DuplicateUserError if the email is taken."""
    if get_user_by_email(db, email) is not None:
        raise DuplicateUserError(normalize_email(email))
    user = User(email=normalize_email(email), name=name.strip(), password_hash=hash_password(password))
    db.add(user)
    db.flush()
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Verify credentials and return user, or None if invalid."""
    user = get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user

"""Password hashing, credential policy checks, and token fingerprinting."""

import hashlib
import re

import bcrypt

from app.core.errors import InvalidEmail, WeakPassword

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
EMAIL_MAX_LEN = 254

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_LETTER = re.compile(r"[a-zA-Z]")
_DIGIT = re.compile(r"\d")


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash. Malformed hashes verify as False."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def normalize_email(email: str) -> str:
    """
    Trim and lowercase an email address, rejecting malformed input.
    Raises InvalidEmail.
    """
    if email is None or not email.strip():
        raise InvalidEmail("Email cannot be empty")
    value = email.strip().lower()
    if len(value) > EMAIL_MAX_LEN or not EMAIL_PATTERN.match(value):
        raise InvalidEmail("Invalid email format")
    return value


def validate_password(password: str) -> None:
    """
    Enforce the password policy, reporting the first rule that fails.
    Order: empty, too short, too long, letter+digit composition. Raises WeakPassword.
    """
    if not password:
        raise WeakPassword("Password cannot be empty")
    if len(password) < PASSWORD_MIN_LEN:
        raise WeakPassword(f"Password must be at least {PASSWORD_MIN_LEN} characters long")
    if len(password) > PASSWORD_MAX_LEN:
        raise WeakPassword(f"Password must not exceed {PASSWORD_MAX_LEN} characters")
    if not _LETTER.search(password) or not _DIGIT.search(password):
        raise WeakPassword("Password must contain at least one letter and one number")


def hash_token(token: str) -> str:
    """SHA-256 fingerprint of a token; only this is persisted for refresh tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

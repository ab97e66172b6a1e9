# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and Profile Service

Every item, invoice and email belongs to a user. Uses bcrypt
for secure password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Email is unique system-wide and compared lower-cased
"""

import bcrypt
import re
from sqlalchemy.exc import IntegrityError
from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..validation import parse_billing_address, parse_profile_payload
from marketbook.time_utils import utcnow


# bcrypt cost factor for passwords and admin secrets
BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_secret(secret: str) -> str:
    """bcrypt hash, stored as a string."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(secret.encode('utf-8'), salt).decode('utf-8')


def verify_secret(secret: str, secret_hash: str | None) -> bool:
    """
    Timing-safe bcrypt comparison.

    Returns False for missing hashes and malformed stored values.
    """
    if not isinstance(secret, str) or not secret or not secret_hash:
        return False
    try:
        return bcrypt.checkpw(secret.encode('utf-8'), secret_hash.encode('utf-8'))
    except ValueError:
        return False


def hash_password(password: str) -> str:
    """Password is validated for strength before hashing."""
    validate_password_strength(password)
    return hash_secret(password)


def verify_password(password: str, password_hash: str) -> bool:
    return verify_secret(password, password_hash)


def _normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def _email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def _commit_unique_email(message: str) -> None:
    """Commit; a concurrent insert of the same email surfaces as a conflict."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


def register_user(name: str, email: str, password: str) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: missing fields or weak password
        ConflictError: email already registered
    """
    name = name.strip() if isinstance(name, str) else ""
    email = _normalize_email(email)
    if not name or not email or not isinstance(password, str) or not password:
        raise ValidationError("name, email and password are required")
    if "@" not in email:
        raise ValidationError("email must be a valid email address")

    if _email_taken(email):
        raise ConflictError("User already exists with this email")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(name=name, email=email, password_hash=password_hash)
    db.session.add(user)
    _commit_unique_email("User already exists with this email")
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise. Unknown email and wrong
    password are indistinguishable to the caller.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter_by(email=_normalize_email(email)).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_profile(user: User, payload: dict) -> User:
    """
    Apply a partial profile update (name, email, phone, avatar, billing_address).

    Raises ConflictError when the new email belongs to another account.
    """
    patch = parse_profile_payload(payload)

    if "email" in patch and _email_taken(patch["email"], exclude_user_id=user.id):
        raise ConflictError("Email already exists")

    billing = patch.pop("billing_address", None)
    for key, value in patch.items():
        setattr(user, key, value)
    for key, value in (billing or {}).items():
        setattr(user, key, value)

    _commit_unique_email("Email already exists")
    return user


def update_billing_address(user: User, address: dict) -> User:
    for key, value in parse_billing_address(address).items():
        setattr(user, key, value)
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> User:
    """
    Replace the password after re-checking the current one.

    Session revocation is left to the caller so the current session can be kept.
    """
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password are required")

    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user


def set_avatar(user: User, avatar_url: str) -> User:
    user.avatar = avatar_url
    db.session.commit()
    return user

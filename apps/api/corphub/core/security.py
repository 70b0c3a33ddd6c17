"""Security utilities for password hashing and JWT session tokens."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from corphub.core.config import settings


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plaintext password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


# =============================================================================
# Session Token (bearer JWT)
# =============================================================================

def create_session_token(
    user_id: int,
    username: str,
    email: str,
    role: str,
    company_id: int | None,
) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET). Role and company travel
    in the token so allow-list checks need no database round-trip.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "email": email,
        "role": role,
        "company_id": company_id,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def create_token_for_user(user) -> str:
    """Mint a session token for a User row."""
    return create_session_token(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        company_id=user.company_id,
    )


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


def parse_bearer(authorization: str | None) -> str | None:
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]

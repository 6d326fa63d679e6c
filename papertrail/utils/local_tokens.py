"""JWT token helpers for authentication."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from papertrail.config.settings import settings

_ALGORITHM = "HS256"


def create_local_token(user_id: str, email: str) -> str:
    """Create a JWT access token carrying the user id as `sub`."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=settings.LOCAL_AUTH_TOKEN_EXP_SECONDS)
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": exp,
        "iat": now,
    }
    return jwt.encode(payload, settings.LOCAL_AUTH_SECRET, algorithm=_ALGORITHM)


def decode_local_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.LOCAL_AUTH_SECRET, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise ValueError(f"Invalid token: {exc}") from exc

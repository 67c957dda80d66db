"""JWT handling for identity-provider access tokens.

Stockroom does not log users in; it verifies bearer tokens minted by the
identity provider with the shared secret.

Token claims read here:
  - sub:            acting user ID
  - permissions:    list of granted permission strings
  - type:           must be "access"
  - exp:            expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from stockroom.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    permissions: list[str],
    expires_delta: timedelta | None = None,
) -> str:
    """Mint an access token (tests and local tooling only)."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "permissions": permissions,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}

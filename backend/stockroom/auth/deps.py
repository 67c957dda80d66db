"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user        → decode the bearer JWT, return CurrentUser
  require_permission(...) → restrict to specific permissions
"""

from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from stockroom.auth.jwt import decode_token
from stockroom.auth.permissions import ALL_PERMISSIONS, has_permission

# Tokens come from the identity provider; tokenUrl only feeds the OpenAPI docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@dataclass
class CurrentUser:
    """The acting user, as asserted by the access token."""
    id: str
    permissions: list[str] = field(default_factory=list)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Decode the JWT and return the acting user, or raise 401."""
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(id=user_id, permissions=list(payload.get("permissions", [])))


def require_permission(*perms: str):
    """Dependency factory — restrict to users who hold ALL listed permissions.

    Usage:
        @router.post("/{operation_id}/process")
        async def process(user: CurrentUser = Depends(require_permission("operations.process"))):
            ...
    """
    unknown = set(perms) - ALL_PERMISSIONS
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(sorted(unknown))}")

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        missing = [p for p in perms if not has_permission(user.permissions, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return user

    return _check

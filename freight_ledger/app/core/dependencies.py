"""
Authentication dependencies for FastAPI.

Tokens are minted by the portal's identity service; this module verifies
them and resolves the caller against the users table.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from freight_ledger.app.core.jwt import decode_access_token
from freight_ledger.app.db.session import get_db
from freight_ledger.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


@dataclass
class AuthResult:
    """Outcome of authorizing a request."""
    authorized: bool
    user: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    status: Optional[int] = None


def _unauthorized(error: str) -> AuthResult:
    return AuthResult(authorized=False, error=error, status=status.HTTP_401_UNAUTHORIZED)


async def authorize(token: Optional[str], db: AsyncSession) -> AuthResult:
    """
    Authorize a bearer token.

    Checks:
    1. Token present, signature and expiry valid
    2. Payload carries a user_id
    3. User exists and is active (real-time check)

    Returns:
        AuthResult; on success ``user`` holds the token payload enriched
        with the user's current role and price ratio
    """
    if not token:
        return _unauthorized("Not authenticated")

    payload = decode_access_token(token)
    if payload is None:
        return _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        return _unauthorized("Invalid token payload")

    user = await db.get(User, user_id)
    if not user:
        return _unauthorized("User not found")

    if not user.is_active:
        return AuthResult(authorized=False, error="User account is inactive", status=status.HTTP_403_FORBIDDEN)

    # Role and ratio come from the database so changes apply without re-issuing tokens
    current = dict(payload)
    current.update({
        "user_id": user.id,
        "role": user.role.value,
        "price_ratio": user.price_ratio,
    })
    return AuthResult(authorized=True, user=current)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Args:
        credentials: HTTP Bearer token from request header
        db: Database session for real-time user status check

    Returns:
        Token payload with ``user_id``, ``role`` and ``price_ratio``

    Raises:
        HTTPException: 401 if authentication fails, 403 for inactive users
    """
    result = await authorize(credentials.credentials if credentials else None, db)
    if not result.authorized:
        headers = {"WWW-Authenticate": "Bearer"} if result.status == status.HTTP_401_UNAUTHORIZED else None
        raise HTTPException(status_code=result.status, detail=result.error, headers=headers)
    return result.user

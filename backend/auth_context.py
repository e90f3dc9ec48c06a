"""
backend/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

Identity is issued by an external provider as an HS256 JWT:
- sub:   user id (required)
- email: user email
- name:  display name (optional)

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict

try:
    from backend.config import SECRET_KEY, ALGORITHM, IS_DEV
except ModuleNotFoundError:
    from config import SECRET_KEY, ALGORITHM, IS_DEV

security = HTTPBearer()


# ---------------------------------------------------------
# JWT Token Verification
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify a JWT and return its decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Verified caller identity.

    The ONLY source of user_id in protected endpoints; ids in request bodies
    or paths never stand in for the caller.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str = ""
    display_name: Optional[str] = None


def require_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthContext:
    """
    FastAPI dependency for authenticated routes.

    Usage:
        @router.get("/projects")
        def list_projects(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(401): If the token is invalid, expired, or has no subject
    """
    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")

    if not user_id:
        print("[AUTH] Missing user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    ctx = AuthContext(
        user_id=str(user_id),
        email=payload.get("email") or "",
        display_name=payload.get("name"),
    )

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}")
    return ctx

"""
Request dependencies for FastAPI.

Provides the authenticated actor and the shared ledger engine.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from inventory_backend.app.core.jwt import decode_access_token
from inventory_backend.app.db.session import AsyncSessionLocal
from inventory_backend.app.domain.ledger.engine import LedgerEngine
from inventory_backend.app.domain.ledger.types import Actor

# HTTP Bearer security scheme
security = HTTPBearer()

ledger_engine = LedgerEngine(AsyncSessionLocal)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """
    FastAPI dependency resolving the request's actor from its JWT.

    Identity is owned by the auth service; the ledger only records who
    performed a mutation, so no further checks happen here.

    Raises:
        HTTPException: 401 if the token is missing, invalid or has no user_id
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(user_id=user_id, username=payload.get("sub"))


def get_ledger_engine() -> LedgerEngine:
    return ledger_engine

# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

settings = get_settings()

# auto_error=False: the SSE stream passes the token as ?token=... because
# EventSource cannot set an Authorization header.
bearer_scheme = HTTPBearer(auto_error=False)

MANAGER_ROLES = {"admin", "manager"}


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (SUPABASE_JWT_ALG using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _default_name_from_email(email: str) -> str:
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def _tenant_claim(payload: dict[str, Any]) -> uuid.UUID | None:
    """
    tenant_id from the top level or from app_metadata (set by the signup hook).
    """
    raw = payload.get("tenant_id") or (payload.get("app_metadata") or {}).get("tenant_id")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


def _extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.query_params.get("token")


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current staff user from a Supabase JWT.

    Flow:
      1. No token (header or ?token=) => return None.
      2. Decode JWT => extract 'sub' and 'email'.
      3. Find the staff profile in public.users.
      4. If missing and the token names a tenant, auto-provision a cashier.

    Raises:
        HTTPException(401): malformed token, or unknown user without tenant.
    """
    token = _extract_token(request, credentials)
    if not token:
        return None

    payload = decode_access_token(token)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub/email",
        )

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    user = session.exec(select(User).where(User.id == sub_uuid)).first()

    if user is None:
        tenant_id = _tenant_claim(payload)
        if tenant_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User is not linked to a restaurant",
            )
        # Least-privileged staff role; managers promote manually
        user = User(
            id=sub_uuid,
            tenant_id=tenant_id,
            email=email,
            name=_default_name_from_email(email),
            role="cashier",
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce an authenticated, active, non-deleted staff user.

    Raises:
        HTTPException(401): if user is None.
        HTTPException(403): if the account is disabled.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    if not user.is_active or user.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )
    return user


def require_manager(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin or manager role (deleting orders, assigning riders,
    creating coupons).
    """
    if user.role not in MANAGER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager access required",
        )
    return user

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.session_scope import Scope, resolve_scope
from app.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.identity_token_url)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller's identity context from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    tenant_id_str = payload.get("tenant_id")
    role_name = payload.get("role")
    if not user_id_str or not tenant_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        tenant_id = UUID(tenant_id_str)
    except ValueError:
        raise credentials_exception

    return CurrentUser(
        id=user_id,
        tenant_id=tenant_id,
        role=str(role_name).upper(),
        name=payload.get("name"),
    )


async def get_read_scope(
    session_id: Optional[UUID] = Query(None, description="View a past session (must belong to your tenant)"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Scope:
    """Scope for read endpoints: explicit session override allowed, validated against the tenant."""
    try:
        return await resolve_scope(db, current_user.tenant_id, override=session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


async def get_write_scope(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Scope:
    """Scope for write endpoints: always the tenant's current session."""
    try:
        return await resolve_scope(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

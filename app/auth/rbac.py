from uuid import UUID

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import StaffRole

FEE_MANAGER_ROLES = (StaffRole.PRINCIPAL.value, StaffRole.SPECIAL_TEACHER.value)


async def require_fee_manager(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require PRINCIPAL or SPECIAL_TEACHER. Fee configuration, collection and reports."""
    if current_user.role not in FEE_MANAGER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the principal or a fee-collecting teacher can perform this action",
        )
    return current_user


def ensure_self_or_fee_manager(current_user: CurrentUser, student_id: UUID) -> None:
    """Students may only read their own ledger."""
    if current_user.role in FEE_MANAGER_ROLES:
        return
    if current_user.role == "STUDENT" and current_user.id == student_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient permissions",
    )


async def require_principal(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Academic session lifecycle is reserved to the principal."""
    if current_user.role != StaffRole.PRINCIPAL.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the principal can manage academic sessions",
        )
    return current_user

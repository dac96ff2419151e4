"""
User Management API Endpoints.

Admin-only user CRUD with audit logging. Deactivation terminates every
session of the target user immediately.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.schemas.user import UserCreate, UserUpdate, RoleUpdate, UserResponse
from backend.app.schemas.admin import AuditTrailResponse, AuditLogResponse
from backend.app.core.guards import require_admin
from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.services.audit import log_actor_event, AuditAction, get_audit_trail

router = APIRouter(prefix="/users", tags=["Users"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


async def _ensure_email_free(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already exists")


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a user of any role (admin-only)."""
    await _ensure_email_free(db, user_data.email)

    user = User(
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        phone=user_data.phone,
        address=user_data.address,
        is_active=True
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    await log_actor_event(
        db, admin, AuditAction.USER_CREATED,
        target_user_id=user.id,
        metadata={"role": user.role.value}
    )

    return UserResponse.model_validate(user)


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List users, newest first."""
    query = select(User)
    if role:
        query = query.where(User.role == role)
    query = query.order_by(User.created_at.desc(), User.id.desc())

    result = await db.execute(query)
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/agents", response_model=List[UserResponse])
async def list_agents(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Active delivery agents by name (for the assignment picker)."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.DELIVERY_AGENT, User.is_active == True)
        .order_by(User.name.asc())
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/customers", response_model=List[UserResponse])
async def list_customers(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.CUSTOMER)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: Optional[int] = Query(None, description="Filter by target user ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail with optional filtering, most recent first."""
    logs = await get_audit_trail(db=db, target_user_id=user_id, action=action, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return UserResponse.model_validate(await _get_user_or_404(db, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    changes: UserUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields. A new password is re-hashed."""
    user = await _get_user_or_404(db, user_id)
    update_data = changes.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != user.email:
        await _ensure_email_free(db, update_data["email"])

    password = update_data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    for field, value in update_data.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)

    await log_actor_event(
        db, admin, AuditAction.USER_UPDATED,
        target_user_id=user.id,
        metadata={"fields": sorted(changes.model_dump(exclude_unset=True))}
    )

    return UserResponse.model_validate(user)


@router.patch("/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Activate or deactivate a user.

    Deactivation revokes all of the user's tokens; reactivation clears
    the revocation so they can log in again.
    """
    user = await _get_user_or_404(db, user_id)

    if user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate yourself"
        )

    user.is_active = not user.is_active
    await db.commit()
    await db.refresh(user)

    if user.is_active:
        await clear_user_token_revocation(user.id)
        action = AuditAction.USER_ACTIVATED
    else:
        await revoke_all_user_tokens(user.id)
        action = AuditAction.USER_DEACTIVATED

    await log_actor_event(db, admin, action, target_user_id=user.id)

    return UserResponse.model_validate(user)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: int,
    request: RoleUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Change a user's role. Takes effect on their next request."""
    user = await _get_user_or_404(db, user_id)
    previous = user.role

    user.role = request.role
    await db.commit()
    await db.refresh(user)

    await log_actor_event(
        db, admin, AuditAction.ROLE_CHANGED,
        target_user_id=user.id,
        metadata={"from_role": previous.value, "to_role": user.role.value}
    )

    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a user (admin-only).

    Users who still own bookings or assignments cannot be deleted (409).
    """
    user = await _get_user_or_404(db, user_id)

    if user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete yourself"
        )

    from backend.app.models.parcel import Parcel

    linked = await db.execute(
        select(Parcel.id)
        .where((Parcel.customer_id == user_id) | (Parcel.agent_id == user_id))
        .limit(1)
    )
    if linked.scalar_one_or_none() is not None:
        raise ConflictError("User has parcels and cannot be deleted")

    await db.delete(user)
    await db.commit()
    await revoke_all_user_tokens(user_id)

    await log_actor_event(db, admin, AuditAction.USER_DELETED, target_user_id=user_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)

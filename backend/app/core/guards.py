"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints and the parcel access
guard used by the lifecycle service.
"""

from typing import List, Dict, Any
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/parcels/assigned")
        async def assigned(current_user: dict = Depends(require_role([UserRole.DELIVERY_AGENT]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency for admin-only endpoints."""
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


def _role(role: Any) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


class ParcelAccessGuard:
    """
    Role-gated access to individual parcels.

    - ADMIN bypasses ownership checks entirely
    - DELIVERY_AGENT only touches parcels assigned to them
    - CUSTOMER only reads their own bookings and never changes status

    Every violation raises InsufficientPermissionsError (403), never
    NotFound, so callers can tell "missing" from "not yours".
    """

    def can_read(self, parcel, user_id: int, role: Any) -> bool:
        role = _role(role)
        if role == UserRole.ADMIN:
            return True
        if role == UserRole.DELIVERY_AGENT:
            return parcel.agent_id == user_id
        return parcel.customer_id == user_id

    def enforce_read(self, parcel, current_user: Dict[str, Any]):
        if not self.can_read(parcel, current_user.get("user_id"), current_user.get("role")):
            raise InsufficientPermissionsError(
                "Access denied. You do not have permission to access this parcel.",
                details={"parcel_id": parcel.id}
            )

    def enforce_status_change(self, parcel, user_id: int, role: Any):
        role = _role(role)
        if role == UserRole.ADMIN:
            return
        if role == UserRole.DELIVERY_AGENT:
            self.enforce_assigned_agent(parcel, user_id, "update status of")
            return
        raise InsufficientPermissionsError(
            "Customers cannot change parcel status",
            details={"parcel_id": parcel.id}
        )

    def enforce_assigned_agent(self, parcel, user_id: int, action: str = "update"):
        if parcel.agent_id is None or parcel.agent_id != user_id:
            raise InsufficientPermissionsError(
                f"You can only {action} your assigned parcels",
                details={"parcel_id": parcel.id}
            )

    def filter_by_ownership(self, current_user: Dict[str, Any]) -> Dict[str, int]:
        """
        Get the parcel filters for list queries.

        Admins: no filtering. Agents: agent_id. Customers: customer_id.
        """
        role = _role(current_user.get("role"))
        user_id = current_user.get("user_id")

        if role == UserRole.ADMIN:
            return {}
        if role == UserRole.DELIVERY_AGENT:
            return {"agent_id": user_id}
        return {"customer_id": user_id}


parcel_access_guard = ParcelAccessGuard()

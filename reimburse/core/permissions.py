# reimburse/core/permissions.py
from typing import Iterable

from fastapi import Depends, HTTPException, status

from reimburse.api.auth import get_current_user
from reimburse.models.user import User, UserRole


def require_roles(roles: Iterable[UserRole]):
    allowed = set(roles)

    def checker(current_user: User = Depends(get_current_user)) -> User:
        # role comes from the database row, never from token claims
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return current_user

    return checker

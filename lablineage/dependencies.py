"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lablineage.auth.utils import decode_access_token
from lablineage.db.database import get_db
from lablineage.db.models import LifecycleState, User, UserRole, Workspace
from lablineage.tenancy import CallerContext

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials.
        db: Database session.

    Returns:
        User: The authenticated user.

    Raises:
        HTTPException: If authentication fails.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_access_token(credentials.credentials)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    # A token minted for another workspace is not valid for this membership
    if token_data.workspace_id is not None and token_data.workspace_id != user.workspace_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token workspace mismatch",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    workspace = db.query(Workspace).filter(Workspace.id == user.workspace_id).first()
    if workspace is None or workspace.lifecycle != LifecycleState.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Workspace is not active",
        )

    return user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get the current user and verify they have admin role.

    Args:
        current_user: The authenticated user.

    Returns:
        User: The admin user.

    Raises:
        HTTPException: If user is not an admin.
    """
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def get_caller(
    current_user: Annotated[User, Depends(get_current_user)],
) -> CallerContext:
    """Build the caller context for the current request.

    Args:
        current_user: The authenticated user.

    Returns:
        CallerContext: Workspace, user and role of the caller.
    """
    return CallerContext.from_user(current_user)


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin_user)]
CurrentCaller = Annotated[CallerContext, Depends(get_caller)]

"""Caller context and workspace scoping helpers.

Every service receives a CallerContext explicitly. Queries for tenant-owned
rows go through ``scoped`` so that foreign and soft-deleted rows look absent.
"""

from dataclasses import dataclass

from sqlalchemy.orm import Query

from lablineage.db.models import LifecycleState, User, UserRole


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, and from which workspace.

    Attributes:
        workspace_id: Workspace the caller belongs to.
        user_id: Calling user.
        role: Caller's role inside that workspace.
    """

    workspace_id: str
    user_id: str
    role: UserRole = UserRole.MEMBER

    @classmethod
    def from_user(cls, user: User) -> "CallerContext":
        return cls(workspace_id=user.workspace_id, user_id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def active(query: Query, model) -> Query:
    """Filter a query to rows that are not soft deleted."""
    return query.filter(model.lifecycle == LifecycleState.ACTIVE)


def scoped(query: Query, model, workspace_id: str) -> Query:
    """Filter a query to live rows of one workspace.

    Args:
        query: Query over ``model``.
        model: Model class with ``workspace_id`` and lifecycle columns.
        workspace_id: Workspace to restrict to.

    Returns:
        Query: The filtered query.
    """
    return active(query, model).filter(model.workspace_id == workspace_id)

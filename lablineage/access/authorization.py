"""Capability resolution.

A caller's capability on an object is the higher of two sources:

* the workspace role, which only applies to objects owned by the caller's
  own workspace (admin -> full, member -> edit, viewer -> view);
* an explicit access grant on the object, which may cross workspaces.

Objects resolving to ``Capability.NONE`` are reported as not found so that
foreign objects are indistinguishable from absent ones.
"""

import enum
import logging

from sqlalchemy.orm import Session

from lablineage.db.models import (
    AccessGrant,
    AccessLevel,
    Analysis,
    Batch,
    DerivedSample,
    LifecycleState,
    ObjectType,
    Project,
    Sample,
    SupplyChainRequest,
    Trial,
    UserRole,
)
from lablineage.errors import NotFoundError, PermissionDeniedError
from lablineage.tenancy import CallerContext

logger = logging.getLogger(__name__)


class Capability(enum.IntEnum):
    """Ordered capability levels."""

    NONE = 0
    VIEW = 1
    EDIT = 2
    FULL = 3


ROLE_BASELINE = {
    UserRole.ADMIN: Capability.FULL,
    UserRole.MEMBER: Capability.EDIT,
    UserRole.VIEWER: Capability.VIEW,
}

GRANT_CAPABILITY = {
    AccessLevel.VIEW: Capability.VIEW,
    AccessLevel.EDIT: Capability.EDIT,
    AccessLevel.FULL: Capability.FULL,
}

OBJECT_MODELS = {
    ObjectType.PROJECT: Project,
    ObjectType.TRIAL: Trial,
    ObjectType.SAMPLE: Sample,
    ObjectType.DERIVED_SAMPLE: DerivedSample,
    ObjectType.BATCH: Batch,
    ObjectType.ANALYSIS: Analysis,
    ObjectType.SUPPLY_CHAIN_REQUEST: SupplyChainRequest,
}


def owner_workspace_id(obj) -> str:
    """Workspace that owns an object. Requests are owned by the sender."""
    if isinstance(obj, SupplyChainRequest):
        return obj.from_workspace_id
    return obj.workspace_id


def load_object(db: Session, object_type: ObjectType, object_id: str):
    """Load a live object of any grantable type, or None."""
    model = OBJECT_MODELS[object_type]
    query = db.query(model).filter(model.id == object_id)
    if hasattr(model, "lifecycle"):
        query = query.filter(model.lifecycle == LifecycleState.ACTIVE)
    return query.first()


def resolve_capability(
    db: Session,
    caller: CallerContext,
    object_type: ObjectType,
    object_id: str,
    owner_workspace: str,
) -> Capability:
    """Merge the caller's role baseline with any explicit grant.

    Args:
        db: Database session.
        caller: Calling user context.
        object_type: Kind of object.
        object_id: Object id.
        owner_workspace: Workspace that owns the object.

    Returns:
        Capability: The effective capability.
    """
    baseline = Capability.NONE
    if owner_workspace == caller.workspace_id:
        baseline = ROLE_BASELINE.get(caller.role, Capability.NONE)

    grant = (
        db.query(AccessGrant.access_level)
        .filter(
            AccessGrant.user_id == caller.user_id,
            AccessGrant.object_type == object_type,
            AccessGrant.object_id == object_id,
        )
        .first()
    )
    granted = GRANT_CAPABILITY[grant[0]] if grant else Capability.NONE

    return max(baseline, granted)


def require_capability(
    db: Session,
    caller: CallerContext,
    object_type: ObjectType,
    object_id: str,
    needed: Capability,
    label: str | None = None,
):
    """Load an object and check the caller may act on it.

    Args:
        db: Database session.
        caller: Calling user context.
        object_type: Kind of object.
        object_id: Object id.
        needed: Minimum capability required.
        label: Name used in error messages, defaults to the object type.

    Returns:
        The loaded object.

    Raises:
        NotFoundError: If the object is absent, deleted, or invisible to the caller.
        PermissionDeniedError: If visible but the capability is insufficient.
    """
    label = label or object_type.value.replace("_", " ").capitalize()
    obj = load_object(db, object_type, object_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")

    capability = resolve_capability(db, caller, object_type, object_id, owner_workspace_id(obj))
    if capability == Capability.NONE:
        raise NotFoundError(f"{label} not found")
    if capability < needed:
        logger.info(
            f"User {caller.user_id} denied {needed.name} on {object_type.value} {object_id}"
        )
        raise PermissionDeniedError(f"Insufficient access to {label.lower()}")
    return obj


def require_workspace_capability(caller: CallerContext, needed: Capability) -> None:
    """Check the caller's role allows creating objects in their own workspace.

    Raises:
        PermissionDeniedError: If the role baseline is below ``needed``.
    """
    if ROLE_BASELINE.get(caller.role, Capability.NONE) < needed:
        logger.info(f"User {caller.user_id} denied {needed.name} in workspace {caller.workspace_id}")
        raise PermissionDeniedError("Insufficient access to create in this workspace")

"""Audit trail service layer.

Entries are added to the caller's session without committing, so an entry
exists exactly when the mutation it describes commits.
"""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from lablineage.access.authorization import Capability, require_capability
from lablineage.db.models import AuditLog, ObjectType, SupplyChainRequest
from lablineage.errors import NotFoundError
from lablineage.tenancy import CallerContext

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    caller: CallerContext,
    object_type: ObjectType,
    object_id: str,
    action: str,
    details: dict | None = None,
) -> AuditLog:
    """Add an audit entry to the current transaction.

    Args:
        db: Database session holding the mutation.
        caller: Acting user.
        object_type: Kind of object acted on.
        object_id: Object id.
        action: Short action name.
        details: Optional JSON-serializable payload.

    Returns:
        AuditLog: The pending entry.
    """
    entry = AuditLog(
        object_type=object_type,
        object_id=object_id,
        action=action,
        actor_id=caller.user_id,
        actor_workspace_id=caller.workspace_id,
        details=details,
    )
    db.add(entry)
    logger.debug(f"Audit {action} on {object_type.value} {object_id} by {caller.user_id}")
    return entry


class AuditService:
    """Service class for reading the audit trail."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize audit service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _check_visible(self, object_type: ObjectType, object_id: str) -> None:
        if object_type == ObjectType.SUPPLY_CHAIN_REQUEST:
            # Both sides of a request see its trail
            request = (
                self.db.query(SupplyChainRequest.id)
                .filter(
                    SupplyChainRequest.id == object_id,
                    or_(
                        SupplyChainRequest.from_workspace_id == self.caller.workspace_id,
                        SupplyChainRequest.to_workspace_id == self.caller.workspace_id,
                    ),
                )
                .first()
            )
            if request is None:
                raise NotFoundError("Collaboration request not found")
            return
        require_capability(self.db, self.caller, object_type, object_id, Capability.VIEW)

    def list_entries(self, object_type: ObjectType, object_id: str) -> list[AuditLog]:
        """List the trail of an object visible to the caller, oldest first.

        Raises:
            NotFoundError: If the object is not visible to the caller.
        """
        self._check_visible(object_type, object_id)
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.object_type == object_type, AuditLog.object_id == object_id)
            .order_by(AuditLog.created_at)
            .all()
        )

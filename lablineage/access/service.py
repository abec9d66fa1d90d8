"""Access grant ledger service layer."""

import logging

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from lablineage.access.schemas import GrantResponse
from lablineage.audit.service import record_audit
from lablineage.db.models import AccessGrant, AccessLevel, ObjectType, User
from lablineage.errors import AlreadyGrantedError, GrantNotFoundError, NotFoundError
from lablineage.tenancy import CallerContext

logger = logging.getLogger(__name__)


class AccessGrantService:
    """Grant, list, change and revoke explicit per-object access.

    Each change commits together with its audit entry. Capability checks on the target
    object are the caller's responsibility (see ``access.authorization``).
    """

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize access grant service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _grant_to_response(self, grant: AccessGrant) -> GrantResponse:
        """Convert grant model to response schema."""
        return GrantResponse(
            id=grant.id,
            user_id=grant.user_id,
            user_email=grant.user.email if grant.user else None,
            user_name=grant.user.full_name if grant.user else None,
            object_type=grant.object_type,
            object_id=grant.object_id,
            access_level=grant.access_level,
            granted_by_id=grant.granted_by_id,
            created_at=grant.created_at,
        )

    def _find(self, user_id: str, object_type: ObjectType, object_id: str) -> AccessGrant | None:
        return (
            self.db.query(AccessGrant)
            .filter(
                AccessGrant.user_id == user_id,
                AccessGrant.object_type == object_type,
                AccessGrant.object_id == object_id,
            )
            .first()
        )

    def grant_access(
        self,
        user_id: str,
        object_type: ObjectType,
        object_id: str,
        access_level: AccessLevel,
    ) -> AccessGrant:
        """Grant a user access to an object.

        Args:
            user_id: Grantee.
            object_type: Kind of object.
            object_id: Object id.
            access_level: Level to grant.

        Returns:
            AccessGrant: The new grant.

        Raises:
            NotFoundError: If the grantee does not exist.
            AlreadyGrantedError: If the user already holds a grant on the object.
        """
        if self.db.query(User.id).filter(User.id == user_id).first() is None:
            raise NotFoundError("User not found")

        if self._find(user_id, object_type, object_id) is not None:
            raise AlreadyGrantedError("Access already granted")

        grant = AccessGrant(
            user_id=user_id,
            object_type=object_type,
            object_id=object_id,
            access_level=access_level,
            granted_by_id=self.caller.user_id,
        )
        self.db.add(grant)
        record_audit(
            self.db,
            self.caller,
            object_type,
            object_id,
            "grant",
            {"user_id": user_id, "access_level": access_level.value},
        )
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent grant of the same triple
            self.db.rollback()
            raise AlreadyGrantedError("Access already granted")
        self.db.refresh(grant)

        logger.info(
            f"Granted {access_level.value} on {object_type.value} {object_id} "
            f"to user {user_id} by {self.caller.user_id}"
        )
        return grant

    def list_grants(self, object_type: ObjectType, object_id: str) -> list[AccessGrant]:
        """List grants on an object, newest first.

        Args:
            object_type: Kind of object.
            object_id: Object id.

        Returns:
            list[AccessGrant]: Grants with their users loaded.
        """
        return (
            self.db.query(AccessGrant)
            .options(joinedload(AccessGrant.user))
            .filter(
                AccessGrant.object_type == object_type,
                AccessGrant.object_id == object_id,
            )
            .order_by(AccessGrant.created_at.desc())
            .all()
        )

    def get_access_level(
        self, user_id: str, object_type: ObjectType, object_id: str
    ) -> AccessLevel | None:
        """Return the granted level, or None when there is no grant."""
        grant = self._find(user_id, object_type, object_id)
        return grant.access_level if grant else None

    def revoke_access(self, user_id: str, object_type: ObjectType, object_id: str) -> None:
        """Delete a grant.

        Raises:
            GrantNotFoundError: If no grant exists for the triple.
        """
        result = self.db.execute(
            delete(AccessGrant).where(
                AccessGrant.user_id == user_id,
                AccessGrant.object_type == object_type,
                AccessGrant.object_id == object_id,
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise GrantNotFoundError("Access grant not found")
        record_audit(self.db, self.caller, object_type, object_id, "revoke", {"user_id": user_id})
        self.db.commit()

        logger.info(f"Revoked access on {object_type.value} {object_id} from user {user_id}")

    def update_access_level(
        self,
        user_id: str,
        object_type: ObjectType,
        object_id: str,
        access_level: AccessLevel,
    ) -> AccessGrant:
        """Change the level of an existing grant.

        Raises:
            GrantNotFoundError: If no grant exists for the triple.
        """
        grant = self._find(user_id, object_type, object_id)
        if grant is None:
            raise GrantNotFoundError("Access grant not found")

        previous = grant.access_level
        grant.access_level = access_level
        record_audit(
            self.db,
            self.caller,
            object_type,
            object_id,
            "update_access",
            {
                "user_id": user_id,
                "from": previous.value,
                "access_level": access_level.value,
            },
        )
        self.db.commit()
        self.db.refresh(grant)
        return grant

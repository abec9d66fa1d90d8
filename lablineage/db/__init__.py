"""Database module."""

from lablineage.db.database import SessionLocal, engine, get_db, init_db
from lablineage.db.models import Base, LifecycleState, Workspace

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Base",
    "LifecycleState",
    "Workspace",
]

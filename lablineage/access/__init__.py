"""Access module for capability resolution and object grants."""

from lablineage.access.authorization import (
    Capability,
    require_capability,
    require_workspace_capability,
    resolve_capability,
)

__all__ = [
    "Capability",
    "require_capability",
    "require_workspace_capability",
    "resolve_capability",
]

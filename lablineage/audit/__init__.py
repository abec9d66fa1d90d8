"""Audit trail of mutations."""

from lablineage.audit.service import record_audit

__all__ = ["record_audit"]

"""Audit log registry.

Uses the in-memory fake by default; a persistent adapter can be installed
with set_audit_log() at application start.
"""

from marketplace.audit.port import AuditLogPort

_audit_log: AuditLogPort | None = None


def get_audit_log() -> AuditLogPort:
    global _audit_log
    if _audit_log is None:
        from marketplace.audit.fake_adapter import FakeAuditLog

        _audit_log = FakeAuditLog()
    return _audit_log


def set_audit_log(audit_log: AuditLogPort) -> None:
    global _audit_log
    _audit_log = audit_log


def reset_audit_log() -> None:
    """Reset the audit log singleton (useful for testing)."""
    global _audit_log
    _audit_log = None

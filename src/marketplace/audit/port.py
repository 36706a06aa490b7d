"""Audit log port — abstract interface for the platform audit trail."""

from abc import ABC, abstractmethod


class AuditLogPort(ABC):
    """Abstract interface for audit log adapters."""

    @abstractmethod
    def record(
        self,
        action: str,
        category: str,
        actor: dict,
        target_id: str,
        target_type: str,
        details: dict | None = None,
    ) -> None:
        """Append one entry to the audit trail.

        ``actor`` is ``{"id": ..., "role": ...}``.
        """
        ...

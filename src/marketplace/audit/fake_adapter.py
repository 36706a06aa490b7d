"""Fake audit log — keeps entries in memory for test assertions."""

from datetime import UTC, datetime

from marketplace.audit.port import AuditLogPort


class FakeAuditLog(AuditLogPort):
    def __init__(self):
        self.entries: list[dict] = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True):
        self.should_succeed = should_succeed

    def record(
        self,
        action: str,
        category: str,
        actor: dict,
        target_id: str,
        target_type: str,
        details: dict | None = None,
    ) -> None:
        if not self.should_succeed:
            raise ConnectionError("Audit store unavailable")
        self.entries.append(
            {
                "action": action,
                "category": category,
                "actor": actor,
                "target_id": target_id,
                "target_type": target_type,
                "details": details or {},
                "recorded_at": datetime.now(UTC),
            }
        )

    def actions(self) -> list[str]:
        return [e["action"] for e in self.entries]

    def reset(self):
        self.entries.clear()
        self.should_succeed = True

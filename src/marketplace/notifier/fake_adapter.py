"""Fake notifier — records notifications for testing."""

from uuid import uuid4

from marketplace.notifier.port import NotifierPort


class FakeNotifier(NotifierPort):
    """Notifier that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(
        self,
        user_id: str,
        role: str,
        type: str,
        title: str,
        message: str,
        payload: dict | None = None,
    ) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)

        self.sent.append(
            {
                "notification_id": f"ntf-{uuid4().hex[:12]}",
                "user_id": user_id,
                "role": role,
                "type": type,
                "title": title,
                "message": message,
                "payload": payload or {},
            }
        )

    def sent_to(self, user_id: str) -> list[dict]:
        return [n for n in self.sent if n["user_id"] == user_id]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

"""Notifier registry — singleton access to the notification dispatcher.

Uses the fake adapter by default; the production dispatcher is installed
with set_notifier() at application start.
"""

from marketplace.notifier.port import NotifierPort

_notifier: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    global _notifier
    if _notifier is None:
        from marketplace.notifier.fake_adapter import FakeNotifier

        _notifier = FakeNotifier()
    return _notifier


def set_notifier(notifier: NotifierPort) -> None:
    global _notifier
    _notifier = notifier


def reset_notifier() -> None:
    """Reset the notifier singleton (useful for testing)."""
    global _notifier
    _notifier = None

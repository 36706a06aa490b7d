"""Notification dispatcher port — abstract interface for user notifications."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def notify(
        self,
        user_id: str,
        role: str,
        type: str,
        title: str,
        message: str,
        payload: dict | None = None,
    ) -> None:
        """Queue an in-app notification for a user. No result is awaited."""
        ...

"""Post-commit, best-effort dispatch to the audit log and the notifier.

Called from domain event handlers, which run after the unit of work that
raised the event has committed. A sink failure is logged and swallowed: it
never reaches the caller of the primary operation and is never retried.
"""

import structlog

from marketplace.audit import get_audit_log
from marketplace.notifier import get_notifier

logger = structlog.get_logger(__name__)


def record_audit(
    action: str,
    category: str,
    actor_id: str | None,
    actor_role: str | None,
    target_id: str,
    target_type: str,
    details: dict | None = None,
) -> None:
    try:
        get_audit_log().record(
            action=action,
            category=category,
            actor={"id": actor_id, "role": actor_role},
            target_id=str(target_id),
            target_type=target_type,
            details=details,
        )
    except Exception as exc:
        logger.error(
            "Audit record failed",
            action=action,
            target_id=str(target_id),
            error=str(exc),
        )


def notify(
    user_id: str,
    role: str,
    type: str,
    title: str,
    message: str,
    payload: dict | None = None,
) -> None:
    try:
        get_notifier().notify(
            user_id=str(user_id),
            role=role,
            type=type,
            title=title,
            message=message,
            payload=payload,
        )
    except Exception as exc:
        logger.error(
            "Notification dispatch failed",
            user_id=str(user_id),
            notification_type=type,
            error=str(exc),
        )

"""Read-side helpers for the admin dispute queue."""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from marketplace.dispute.dispute import PRIORITY_RANK, Dispute, DisputePriority, DisputeStatus

_ACTIVE_STATUSES = {
    DisputeStatus.OPEN.value,
    DisputeStatus.INVESTIGATING.value,
    DisputeStatus.ESCALATED.value,
}


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def list_disputes(status: str | None = None, priority: str | None = None) -> list[Dispute]:
    """Disputes matching the filters, most urgent first, newest first within a priority."""
    query = current_domain.repository_for(Dispute)._dao.query
    filters = {}
    if status:
        filters["status"] = status
    if priority:
        filters["priority"] = priority
    if filters:
        query = query.filter(**filters)

    disputes = query.limit(None).all().items
    return sorted(
        disputes,
        key=lambda d: (PRIORITY_RANK.get(d.priority, len(PRIORITY_RANK)), -_timestamp(d.created_at)),
    )


def dispute_stats() -> dict:
    """Counts by status, active disputes by priority, and mean hours to resolve."""
    disputes = current_domain.repository_for(Dispute)._dao.query.limit(None).all().items

    by_status = {status.value: 0 for status in DisputeStatus}
    open_by_priority = {priority.value: 0 for priority in DisputePriority}
    resolution_hours = []

    for dispute in disputes:
        by_status[dispute.status] = by_status.get(dispute.status, 0) + 1
        if dispute.status in _ACTIVE_STATUSES:
            open_by_priority[dispute.priority] = open_by_priority.get(dispute.priority, 0) + 1
        if dispute.resolved_at and dispute.created_at:
            elapsed = _timestamp(dispute.resolved_at) - _timestamp(dispute.created_at)
            resolution_hours.append(elapsed / 3600)

    average = round(sum(resolution_hours) / len(resolution_hours), 2) if resolution_hours else None
    return {
        "total": len(disputes),
        "by_status": by_status,
        "open_by_priority": open_by_priority,
        "average_resolution_hours": average,
    }

"""Commission side effects — audit trail for rate changes."""

from protean.utils.mixins import handle

from marketplace.actor import ActorRole
from marketplace.commission.events import CommissionRateChanged
from marketplace.commission.rate import CommissionRate
from marketplace.domain import marketplace
from marketplace.side_effects import record_audit


@marketplace.event_handler(part_of=CommissionRate)
class CommissionSideEffects:
    @handle(CommissionRateChanged)
    def on_rate_changed(self, event: CommissionRateChanged) -> None:
        record_audit(
            "COMMISSION_RATE_CHANGED",
            "commission",
            str(event.changed_by),
            ActorRole.ADMIN.value,
            event.rate_id,
            "commission_rate",
            {
                "scope": event.scope,
                "scope_key": event.scope_key,
                "previous_rate": event.previous_rate,
                "rate": event.rate,
            },
        )

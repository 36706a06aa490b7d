"""Commission domain events."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="CommissionRate")
class CommissionRateChanged:
    """A commission rate was set or cleared for one scope."""

    __version__ = 1

    rate_id = Identifier(required=True)
    scope = String(required=True)
    scope_key = String()
    rate = Float()
    previous_rate = Float()
    changed_by = Identifier(required=True)
    changed_at = DateTime(required=True)

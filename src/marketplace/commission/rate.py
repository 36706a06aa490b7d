"""CommissionRate aggregate (CQRS) — one row per rate scope.

Three independent scopes exist: the platform default (a single row), a
per-category override and a per-vendor override. Overrides are nullable; a
``None`` rate means "fall through to the next scope".

Rows use deterministic identities (``default``, ``category:<id>``,
``vendor:<id>``) so lookups are a plain ``get`` by id.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from marketplace.commission.events import CommissionRateChanged
from marketplace.domain import marketplace
from marketplace.errors import ValidationError

DEFAULT_COMMISSION_RATE = 0.08


class CommissionScope(Enum):
    DEFAULT = "default"
    CATEGORY = "category"
    VENDOR = "vendor"


def rate_identity(scope: CommissionScope, scope_key: str | None = None) -> str:
    if scope == CommissionScope.DEFAULT:
        return CommissionScope.DEFAULT.value
    return f"{scope.value}:{scope_key}"


def normalize_rate(rate, allow_null: bool) -> float | None:
    """Validate a rate fraction and round it to 4 decimal places."""
    if rate is None:
        if allow_null:
            return None
        raise ValidationError({"rate": ["Platform default commission rate is required"]})

    try:
        value = Decimal(str(rate))
    except ArithmeticError as exc:
        raise ValidationError({"rate": ["Commission rate must be a number"]}) from exc

    if not value.is_finite() or value < 0 or value > 1:
        raise ValidationError({"rate": ["Commission rate must be between 0 and 1"]})

    return float(value.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP))


@marketplace.aggregate
class CommissionRate:
    id = Identifier(identifier=True)
    scope = String(required=True, max_length=20, choices=CommissionScope)
    scope_key = String(max_length=100)
    rate = Float()
    updated_by = Identifier()
    updated_at = DateTime()

    @classmethod
    def create(cls, scope: CommissionScope, scope_key: str | None = None):
        return cls(
            id=rate_identity(scope, scope_key),
            scope=scope.value,
            scope_key=scope_key,
            rate=None,
        )

    def change_rate(self, rate, changed_by: str) -> None:
        """Set (or clear, for overrides) the rate of this scope."""
        scope = CommissionScope(self.scope)
        new_rate = normalize_rate(rate, allow_null=scope != CommissionScope.DEFAULT)
        previous = self.rate
        now = datetime.now(UTC)

        self.rate = new_rate
        self.updated_by = changed_by
        self.updated_at = now
        self.raise_(
            CommissionRateChanged(
                rate_id=str(self.id),
                scope=self.scope,
                scope_key=self.scope_key,
                rate=new_rate,
                previous_rate=previous,
                changed_by=changed_by,
                changed_at=now,
            )
        )

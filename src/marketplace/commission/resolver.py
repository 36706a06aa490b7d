"""Commission rate resolution.

The effective rate for an order item follows a strict precedence: a vendor
override wins over a category override, which wins over the platform default.
``pick_rate`` is the pure precedence rule; ``resolve`` and ``rates_for`` read
the three scopes from the store and apply it.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.commission.rate import (
    DEFAULT_COMMISSION_RATE,
    CommissionRate,
    CommissionScope,
    rate_identity,
)
from marketplace.money import round_money, to_decimal


@dataclass(frozen=True)
class CommissionRates:
    """Every scope that contributed to an effective rate."""

    default_rate: float
    category_rate: float | None
    vendor_rate: float | None
    effective_rate: float
    source: str


def pick_rate(vendor_rate: float | None, category_rate: float | None, default_rate: float) -> tuple[float, str]:
    """Return ``(rate, source)``: vendor if set, else category if set, else default."""
    if vendor_rate is not None:
        return vendor_rate, CommissionScope.VENDOR.value
    if category_rate is not None:
        return category_rate, CommissionScope.CATEGORY.value
    return default_rate, CommissionScope.DEFAULT.value


def split_commission(final_price: float, rate: float) -> tuple[float, float]:
    """Split an item's final price into ``(commission_amount, vendor_earnings)``."""
    commission = round_money(to_decimal(final_price) * to_decimal(rate))
    earnings = round_money(to_decimal(final_price) - to_decimal(commission))
    return commission, earnings


def _stored_rate(scope: CommissionScope, scope_key: str | None = None) -> float | None:
    try:
        record = current_domain.repository_for(CommissionRate).get(rate_identity(scope, scope_key))
    except ObjectNotFoundError:
        return None
    return record.rate


def default_rate() -> float:
    rate = _stored_rate(CommissionScope.DEFAULT)
    return DEFAULT_COMMISSION_RATE if rate is None else rate


def rates_for(vendor_id: str | None, category_id: str | None) -> CommissionRates:
    """Look up all three scopes and report the effective rate with its source."""
    default = default_rate()
    category = _stored_rate(CommissionScope.CATEGORY, category_id) if category_id else None
    vendor = _stored_rate(CommissionScope.VENDOR, vendor_id) if vendor_id else None
    effective, source = pick_rate(vendor, category, default)
    return CommissionRates(
        default_rate=default,
        category_rate=category,
        vendor_rate=vendor,
        effective_rate=effective,
        source=source,
    )


def resolve(vendor_id: str | None, category_id: str | None) -> float:
    return rates_for(vendor_id, category_id).effective_rate

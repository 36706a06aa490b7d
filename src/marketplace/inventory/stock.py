"""StockLevel aggregate (CQRS) — available quantity per inventory-tracked product.

Only products with a stock record are tracked. Orders reserve stock when
placed and cancellation puts it back.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.errors import StateConflictError, ValidationError
from marketplace.inventory.events import StockLevelSet


@marketplace.aggregate
class StockLevel:
    id = Identifier(identifier=True)  # product id
    available = Integer(default=0, min_value=0)
    updated_at = DateTime()

    def reserve(self, quantity: int) -> None:
        if quantity > self.available:
            raise StateConflictError(
                {"quantity": [f"Only {self.available} unit(s) of product {self.id} are available"]}
            )
        self.available -= quantity
        self.updated_at = datetime.now(UTC)

    def restore(self, quantity: int) -> None:
        self.available += quantity
        self.updated_at = datetime.now(UTC)

    def set_available(self, available: int, set_by: str, set_by_role: str, previous: int | None = None) -> None:
        if available < 0:
            raise ValidationError({"available": ["Available quantity cannot be negative"]})
        now = datetime.now(UTC)
        self.available = available
        self.updated_at = now
        self.raise_(
            StockLevelSet(
                product_id=str(self.id),
                available=available,
                previous_available=previous,
                set_by=set_by,
                set_by_role=set_by_role,
                set_at=now,
            )
        )


def stock_for(product_id: str) -> StockLevel | None:
    try:
        return current_domain.repository_for(StockLevel).get(str(product_id))
    except ObjectNotFoundError:
        return None


def adjust_stock(items: list[dict], reserve: bool) -> None:
    """Reserve or restore ``[{product_id, quantity}]`` for tracked products."""
    quantities: dict[str, int] = {}
    for entry in items:
        product_id = str(entry["product_id"])
        quantities[product_id] = quantities.get(product_id, 0) + entry["quantity"]

    repo = current_domain.repository_for(StockLevel)
    for product_id, quantity in quantities.items():
        stock = stock_for(product_id)
        if stock is None:
            continue
        if reserve:
            stock.reserve(quantity)
        else:
            stock.restore(quantity)
        repo.add(stock)


@marketplace.command(part_of="StockLevel")
class SetStockLevel:
    product_id = Identifier(required=True)
    available = Integer(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=StockLevel)
class StockLevelHandler:
    @handle(SetStockLevel)
    def set_stock_level(self, command):
        require_role(command.actor_role, ActorRole.ADMIN, ActorRole.VENDOR)
        existing = stock_for(command.product_id)
        stock = existing or StockLevel(id=str(command.product_id))
        stock.set_available(
            command.available,
            str(command.actor_id),
            command.actor_role,
            previous=existing.available if existing else None,
        )
        current_domain.repository_for(StockLevel).add(stock)
        return stock.available

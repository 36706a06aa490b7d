"""Order lookup shared by the order and dispute handlers."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import NotFoundError
from marketplace.order.order import Order


def get_order(order_id: str) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise NotFoundError({"order_id": [f"Order {order_id} not found"]}) from exc

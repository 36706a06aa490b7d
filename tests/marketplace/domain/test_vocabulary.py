import pytest

from marketplace.errors import ValidationError
from marketplace.order.vocabulary import (
    canonical_item_action,
    canonical_item_status,
    canonical_order_status,
)


class TestLegacyOrderStatuses:
    @pytest.mark.parametrize(
        "legacy, canonical",
        [
            ("created", "pending_payment"),
            ("processing", "confirmed"),
            ("shipped", "out_for_delivery"),
            ("fulfilled", "delivered"),
        ],
    )
    def test_translation(self, legacy, canonical):
        assert canonical_order_status(legacy) == canonical

    def test_canonical_passes_through(self):
        assert canonical_order_status("ready_for_pickup") == "ready_for_pickup"

    def test_unknown_rejected(self):
        with pytest.raises(ValidationError):
            canonical_order_status("teleported")


class TestLegacyItemVocabulary:
    def test_item_statuses(self):
        assert canonical_item_status("shipped") == "handed_to_courier"
        assert canonical_item_status("fulfilled") == "delivered"
        assert canonical_item_status("packed") == "packed"

    @pytest.mark.parametrize(
        "action, canonical",
        [
            ("ship", "hand_to_courier"),
            ("fulfill", "mark_delivered"),
            ("handToCourier", "hand_to_courier"),
            ("markDelivered", "mark_delivered"),
            ("pack", "pack"),
        ],
    )
    def test_item_actions(self, action, canonical):
        assert canonical_item_action(action) == canonical

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            canonical_item_action("teleport")

"""Commission rate management — admin commands for the three rate scopes."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.commission.rate import CommissionRate, CommissionScope, rate_identity
from marketplace.domain import marketplace

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CommissionRate")
class SetDefaultCommissionRate:
    rate = Float()
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="CommissionRate")
class SetCategoryCommissionRate:
    category_id = Identifier(required=True)
    rate = Float()  # None clears the override
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="CommissionRate")
class SetVendorCommissionRate:
    vendor_id = Identifier(required=True)
    rate = Float()  # None clears the override
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=CommissionRate)
class CommissionRateHandler:
    @handle(SetDefaultCommissionRate)
    def set_default_rate(self, command):
        return self._set_rate(command, CommissionScope.DEFAULT, None)

    @handle(SetCategoryCommissionRate)
    def set_category_rate(self, command):
        return self._set_rate(command, CommissionScope.CATEGORY, str(command.category_id))

    @handle(SetVendorCommissionRate)
    def set_vendor_rate(self, command):
        return self._set_rate(command, CommissionScope.VENDOR, str(command.vendor_id))

    def _set_rate(self, command, scope: CommissionScope, scope_key: str | None):
        require_role(command.actor_role, ActorRole.ADMIN)

        repo = current_domain.repository_for(CommissionRate)
        try:
            record = repo.get(rate_identity(scope, scope_key))
        except ObjectNotFoundError:
            record = CommissionRate.create(scope, scope_key)

        record.change_rate(command.rate, changed_by=str(command.actor_id))
        repo.add(record)

        logger.info(
            "Commission rate updated",
            scope=scope.value,
            scope_key=scope_key,
            rate=record.rate,
        )
        return record.rate

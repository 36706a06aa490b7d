"""Error taxonomy for the marketplace core.

Every rejected operation raises one of these. Each carries a stable ``code``
for callers and a ``messages`` dict in the same ``{"field": ["message"]}``
shape Protean uses for its own validation errors.
"""

from protean.exceptions import ValidationError as ProteanValidationError


class MarketplaceError(Exception):
    """Base class for errors surfaced to callers of the marketplace core."""

    code = "marketplace_error"
    status_code = 400

    def __init__(self, messages: dict[str, list[str]], **kwargs):
        self.messages = messages
        super().__init__(messages, **kwargs)

    @property
    def message(self) -> str:
        """First human-readable message, for single-line error responses."""
        for errors in self.messages.values():
            if errors:
                return errors[0]
        return self.code


class ValidationError(MarketplaceError, ProteanValidationError):
    """Malformed or out-of-range input."""

    code = "validation_error"
    status_code = 400


class AuthorizationError(MarketplaceError):
    """Actor lacks the required role or ownership."""

    code = "authorization_error"
    status_code = 403


class StateConflictError(MarketplaceError):
    """Operation attempted from an illegal predecessor state."""

    code = "state_conflict"
    status_code = 409


class NotFoundError(MarketplaceError):
    """Referenced order, dispute or item does not exist."""

    code = "not_found"
    status_code = 404


class ExternalGatewayError(MarketplaceError):
    """The payment gateway failed or answered with an unexpected shape."""

    code = "external_gateway_error"
    status_code = 502

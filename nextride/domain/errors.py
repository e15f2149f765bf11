"""
Error taxonomy shared by every layer.

NotFoundError, ForbiddenError and InvalidStateError are returned to the
caller as typed failures. GatewayError marks a retryable outbound payment
failure. ConsistencyWarning is never raised to callers: it describes a
ledger write that failed after its listing write succeeded and is only
logged.
"""


class MarketplaceError(Exception):
    """Base class for failures surfaced to API callers."""


class NotFoundError(MarketplaceError):
    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found.")


class ForbiddenError(MarketplaceError):
    pass


class InvalidStateError(MarketplaceError):
    pass


class GatewayError(MarketplaceError):
    """Outbound payment gateway call failed. Safe to retry."""


class ConsistencyWarning(Warning):
    def __init__(self, owner_id: str, delta: dict[str, int], cause: BaseException) -> None:
        self.owner_id = owner_id
        self.delta = delta
        self.cause = cause
        super().__init__(
            f"Counter update {delta} for owner {owner_id} failed after the listing write: {cause}"
        )

"""Domain-specific exceptions"""

from typing import Optional

from proposal_gateway.domain.enums import PolicyStatus, VerdictChannel


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Monetary amount is negative or not a number"""

    pass


class CurrencyMismatchError(DomainException):
    """Two amounts in different currencies were compared"""

    pass


class InvalidIntakeError(DomainException):
    """Proposal intake data is malformed or incomplete"""

    pass


class IllegalTransitionError(DomainException):
    """Requested transition is not legal from the current status"""

    def __init__(self, from_status: PolicyStatus, to_status: PolicyStatus, detail: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Invalid transition from {from_status.value} to {to_status.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateVerdictError(DomainException):
    """A verdict for this channel was already recorded"""

    def __init__(self, channel: VerdictChannel):
        self.channel = channel
        super().__init__(f"{channel.label} verdict already recorded")


class HistoryOrderError(DomainException):
    """History entry would be older than the last recorded one"""

    pass


class ProposalNotFoundError(DomainException):
    """No proposal exists with the given id"""

    pass


class ConcurrencyConflictError(DomainException):
    """Proposal was modified by another writer since it was loaded"""

    pass


class RiskServiceError(DomainException):
    """Risk API returned an error or is unavailable"""

    pass

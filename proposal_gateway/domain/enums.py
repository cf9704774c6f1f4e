"""Enumerations shared by the proposal domain"""

from enum import Enum


class PolicyStatus(str, Enum):
    """Lifecycle state of a policy proposal"""

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self in (PolicyStatus.APPROVED, PolicyStatus.REJECTED, PolicyStatus.CANCELED)


class RiskTier(str, Enum):
    """Customer risk classification supplied by the risk service"""

    REGULAR = "REGULAR"
    HIGH_RISK = "HIGH_RISK"
    PREFERENTIAL = "PREFERENTIAL"
    NO_INFORMATION = "NO_INFORMATION"


class Category(str, Enum):
    """Insurance category of a proposal"""

    AUTO = "AUTO"
    LIFE = "LIFE"
    RESIDENTIAL = "RESIDENTIAL"
    BUSINESS = "BUSINESS"
    OTHER = "OTHER"


class SalesChannel(str, Enum):
    MOBILE = "MOBILE"
    WEB = "WEB"
    WHATSAPP = "WHATSAPP"
    OTHER = "OTHER"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT = "DEBIT"
    BOLETO = "BOLETO"
    PIX = "PIX"


class OccurrenceType(str, Enum):
    """Kind of finding reported alongside a risk classification"""

    FRAUD = "FRAUD"
    SUSPICION = "SUSPICION"


class VerdictChannel(str, Enum):
    """External authorization that must confirm a pending proposal"""

    PAYMENT = "PAYMENT"
    SUBSCRIPTION = "SUBSCRIPTION"

    @property
    def label(self) -> str:
        return self.value.capitalize()

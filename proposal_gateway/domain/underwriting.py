"""Underwriting limit matrix - insured-amount ceilings by risk tier and category"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

from proposal_gateway.domain.enums import Category, RiskTier
from proposal_gateway.domain.models import Money


@dataclass(frozen=True)
class Limit:
    """Ceiling for the insured amount; strict limits reject the ceiling itself"""

    ceiling: Decimal
    strict: bool = False

    @property
    def operator(self) -> str:
        return "<" if self.strict else "<="


@dataclass(frozen=True)
class UnderwritingResult:
    """Outcome of checking a proposal against the limit matrix"""

    accepted: bool
    tier: RiskTier
    category: Category
    limit: Limit
    reason: Optional[str] = None


def _inclusive(value: str) -> Limit:
    return Limit(Decimal(value))


def _strict(value: str) -> Limit:
    return Limit(Decimal(value), strict=True)


# One entry per (tier, category) pair; ceilings are in the proposal's currency.
# Preferential customers get higher ceilings for Life, Auto and Residential,
# but the ceiling value itself is rejected.
UNDERWRITING_LIMITS: Dict[Tuple[RiskTier, Category], Limit] = {
    (RiskTier.REGULAR, Category.LIFE): _inclusive("500000.00"),
    (RiskTier.REGULAR, Category.RESIDENTIAL): _inclusive("500000.00"),
    (RiskTier.REGULAR, Category.AUTO): _inclusive("350000.00"),
    (RiskTier.REGULAR, Category.BUSINESS): _inclusive("255000.00"),
    (RiskTier.REGULAR, Category.OTHER): _inclusive("100000.00"),
    (RiskTier.HIGH_RISK, Category.LIFE): _inclusive("125000.00"),
    (RiskTier.HIGH_RISK, Category.RESIDENTIAL): _inclusive("150000.00"),
    (RiskTier.HIGH_RISK, Category.AUTO): _inclusive("250000.00"),
    (RiskTier.HIGH_RISK, Category.BUSINESS): _inclusive("125000.00"),
    (RiskTier.HIGH_RISK, Category.OTHER): _inclusive("50000.00"),
    (RiskTier.PREFERENTIAL, Category.LIFE): _strict("800000.00"),
    (RiskTier.PREFERENTIAL, Category.RESIDENTIAL): _strict("450000.00"),
    (RiskTier.PREFERENTIAL, Category.AUTO): _strict("450000.00"),
    (RiskTier.PREFERENTIAL, Category.BUSINESS): _inclusive("375000.00"),
    (RiskTier.PREFERENTIAL, Category.OTHER): _inclusive("300000.00"),
    (RiskTier.NO_INFORMATION, Category.LIFE): _inclusive("200000.00"),
    (RiskTier.NO_INFORMATION, Category.RESIDENTIAL): _inclusive("200000.00"),
    (RiskTier.NO_INFORMATION, Category.AUTO): _inclusive("75000.00"),
    (RiskTier.NO_INFORMATION, Category.BUSINESS): _inclusive("55000.00"),
    (RiskTier.NO_INFORMATION, Category.OTHER): _inclusive("30000.00"),
}


def _missing_limits() -> list:
    return [
        (tier, category)
        for tier in RiskTier
        for category in Category
        if (tier, category) not in UNDERWRITING_LIMITS
    ]


if _missing_limits():
    raise RuntimeError(f"Underwriting matrix is incomplete: {_missing_limits()}")


def get_limit(tier: RiskTier, category: Category) -> Limit:
    """Look up the ceiling for a tier/category pair.

    Raises LookupError for pairs outside the matrix instead of approving.
    """
    try:
        return UNDERWRITING_LIMITS[(tier, category)]
    except KeyError:
        raise LookupError(f"No underwriting limit for tier={tier} category={category}") from None


def evaluate(insured_amount: Money, category: Category, tier: RiskTier) -> UnderwritingResult:
    """
    Check an insured amount against the limit matrix.

    The ceiling is taken in the insured amount's own currency. On rejection
    the reason names the tier, the category and the exceeded ceiling, e.g.
    "Insured amount 350000.01 BRL exceeds REGULAR limit for AUTO (<= 350000.00 BRL)".
    """
    try:
        tier, category = RiskTier(tier), Category(category)
    except ValueError:
        raise LookupError(f"No underwriting limit for tier={tier} category={category}") from None

    limit = get_limit(tier, category)
    ceiling = Money(limit.ceiling, insured_amount.currency)

    if limit.strict:
        accepted = insured_amount < ceiling
    else:
        accepted = insured_amount <= ceiling

    reason = None
    if not accepted:
        reason = (
            f"Insured amount {insured_amount} exceeds {tier.value} limit "
            f"for {category.value} ({limit.operator} {ceiling})"
        )

    return UnderwritingResult(
        accepted=accepted,
        tier=tier,
        category=category,
        limit=limit,
        reason=reason,
    )


def is_acceptable(insured_amount: Money, category: Category, tier: RiskTier) -> bool:
    """Return True when the insured amount is within the tier/category ceiling"""
    return evaluate(insured_amount, category, tier).accepted

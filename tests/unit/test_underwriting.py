"""Unit tests for the underwriting limit matrix"""

import pytest
from decimal import Decimal
from proposal_gateway.domain.enums import Category, RiskTier
from proposal_gateway.domain.exceptions import CurrencyMismatchError
from proposal_gateway.domain.models import Money
from proposal_gateway.domain.underwriting import (
    UNDERWRITING_LIMITS,
    evaluate,
    get_limit,
    is_acceptable,
)

CENT = Decimal("0.01")

# (tier, category, ceiling, strict) - written out independently of the module table
EXPECTED_LIMITS = [
    (RiskTier.REGULAR, Category.LIFE, "500000.00", False),
    (RiskTier.REGULAR, Category.RESIDENTIAL, "500000.00", False),
    (RiskTier.REGULAR, Category.AUTO, "350000.00", False),
    (RiskTier.REGULAR, Category.BUSINESS, "255000.00", False),
    (RiskTier.REGULAR, Category.OTHER, "100000.00", False),
    (RiskTier.HIGH_RISK, Category.LIFE, "125000.00", False),
    (RiskTier.HIGH_RISK, Category.RESIDENTIAL, "150000.00", False),
    (RiskTier.HIGH_RISK, Category.AUTO, "250000.00", False),
    (RiskTier.HIGH_RISK, Category.BUSINESS, "125000.00", False),
    (RiskTier.HIGH_RISK, Category.OTHER, "50000.00", False),
    (RiskTier.PREFERENTIAL, Category.LIFE, "800000.00", True),
    (RiskTier.PREFERENTIAL, Category.RESIDENTIAL, "450000.00", True),
    (RiskTier.PREFERENTIAL, Category.AUTO, "450000.00", True),
    (RiskTier.PREFERENTIAL, Category.BUSINESS, "375000.00", False),
    (RiskTier.PREFERENTIAL, Category.OTHER, "300000.00", False),
    (RiskTier.NO_INFORMATION, Category.LIFE, "200000.00", False),
    (RiskTier.NO_INFORMATION, Category.RESIDENTIAL, "200000.00", False),
    (RiskTier.NO_INFORMATION, Category.AUTO, "75000.00", False),
    (RiskTier.NO_INFORMATION, Category.BUSINESS, "55000.00", False),
    (RiskTier.NO_INFORMATION, Category.OTHER, "30000.00", False),
]


def test_matrix_covers_every_tier_and_category():
    """5 categories x 4 tiers, no pair left to a default"""
    assert len(UNDERWRITING_LIMITS) == 20
    for tier in RiskTier:
        for category in Category:
            assert (tier, category) in UNDERWRITING_LIMITS


@pytest.mark.parametrize("tier,category,ceiling,strict", EXPECTED_LIMITS)
def test_limit_boundaries(tier, category, ceiling, strict):
    """Below accepted, above rejected, ceiling accepted unless the limit is strict"""
    ceiling = Decimal(ceiling)

    assert is_acceptable(Money(ceiling - CENT), category, tier) is True
    assert is_acceptable(Money(ceiling), category, tier) is (not strict)
    assert is_acceptable(Money(ceiling + CENT), category, tier) is False


@pytest.mark.parametrize("tier,category,ceiling,strict", EXPECTED_LIMITS)
def test_get_limit_matches_table(tier, category, ceiling, strict):
    limit = get_limit(tier, category)
    assert limit.ceiling == Decimal(ceiling)
    assert limit.strict is strict


def test_auto_regular_ceiling_boundary():
    """Auto / Regular: 350,000.00 accepted, 350,000.01 rejected"""
    assert is_acceptable(Money("350000.00"), Category.AUTO, RiskTier.REGULAR) is True
    assert is_acceptable(Money("350000.01"), Category.AUTO, RiskTier.REGULAR) is False


def test_preferential_ceiling_is_rejected():
    """Preferential Life rejects exactly 800,000 while Regular Life accepts its own ceiling"""
    assert is_acceptable(Money("800000.00"), Category.LIFE, RiskTier.PREFERENTIAL) is False
    assert is_acceptable(Money("500000.00"), Category.LIFE, RiskTier.REGULAR) is True


def test_rejection_reason_names_tier_category_and_ceiling():
    result = evaluate(Money("350000.01"), Category.AUTO, RiskTier.REGULAR)

    assert result.accepted is False
    assert result.reason == "Insured amount 350000.01 BRL exceeds REGULAR limit for AUTO (<= 350000.00 BRL)"


def test_strict_rejection_reason_uses_strict_operator():
    result = evaluate(Money("450000.00"), Category.RESIDENTIAL, RiskTier.PREFERENTIAL)

    assert result.accepted is False
    assert "PREFERENTIAL" in result.reason
    assert "RESIDENTIAL" in result.reason
    assert "(< 450000.00 BRL)" in result.reason


def test_accepted_result_has_no_reason():
    result = evaluate(Money("1000.00"), Category.OTHER, RiskTier.NO_INFORMATION)

    assert result.accepted is True
    assert result.reason is None
    assert result.limit.ceiling == Decimal("30000.00")


def test_ceiling_follows_insured_currency():
    """Ceilings apply in the proposal's own currency"""
    result = evaluate(Money("30000.01", "USD"), Category.OTHER, RiskTier.NO_INFORMATION)

    assert result.accepted is False
    assert "(<= 30000.00 USD)" in result.reason


def test_unknown_pair_raises_lookup_error():
    with pytest.raises(LookupError):
        get_limit("PLATINUM", Category.AUTO)


def test_ceiling_comparison_is_same_currency_only():
    """Guard on Money ordering used by the matrix"""
    with pytest.raises(CurrencyMismatchError):
        Money("1", "BRL") <= Money("1", "EUR")


def test_plain_string_tier_and_category_are_accepted():
    result = evaluate(Money("350000.01"), "AUTO", "REGULAR")

    assert result.accepted is False
    assert result.tier is RiskTier.REGULAR
    assert result.reason == "Insured amount 350000.01 BRL exceeds REGULAR limit for AUTO (<= 350000.00 BRL)"
    assert is_acceptable(Money("350000.00"), "AUTO", "REGULAR") is True


def test_unknown_tier_in_evaluate_raises_lookup_error():
    with pytest.raises(LookupError):
        evaluate(Money("1"), Category.AUTO, "PLATINUM")

from datetime import datetime, timedelta

import pytest

from utils.risk_evaluator import (
    CERTIFICATE_THRESHOLDS,
    HMO_THRESHOLDS,
    PortfolioCounts,
    Priority,
    RiskLevel,
    Urgency,
    classify_urgency,
    days_until,
    derive_certificate_status,
    is_expiring_within,
    portfolio_risk_score,
    priority_for_days_overdue,
    priority_for_days_remaining,
    risk_level_for_score,
    severity_rank,
)

NOW = datetime(2025, 3, 1, 9, 0, 0)


def test_days_until_rounds_partial_days_up():
    assert days_until(NOW + timedelta(hours=1), NOW) == 1
    assert days_until(NOW + timedelta(days=5), NOW) == 5
    assert days_until(NOW - timedelta(hours=1), NOW) == 0
    assert days_until(NOW - timedelta(days=2, hours=1), NOW) == -2


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(days=-1), Urgency.OVERDUE),
        (timedelta(days=7), Urgency.CRITICAL),
        (timedelta(days=8), Urgency.WARNING),
        (timedelta(days=30), Urgency.WARNING),
        (timedelta(days=31), Urgency.NORMAL),
    ],
)
def test_classify_urgency_boundaries(offset, expected):
    assert classify_urgency(NOW + offset, NOW) == expected


def test_certificate_priority_tiers_are_inclusive():
    assert priority_for_days_remaining(7, CERTIFICATE_THRESHOLDS) == Priority.CRITICAL
    assert priority_for_days_remaining(8, CERTIFICATE_THRESHOLDS) == Priority.HIGH
    assert priority_for_days_remaining(14, CERTIFICATE_THRESHOLDS) == Priority.HIGH
    assert priority_for_days_remaining(15, CERTIFICATE_THRESHOLDS) == Priority.NORMAL


def test_hmo_priority_uses_wider_thresholds():
    assert priority_for_days_remaining(14, HMO_THRESHOLDS) == Priority.CRITICAL
    assert priority_for_days_remaining(30, HMO_THRESHOLDS) == Priority.HIGH
    assert priority_for_days_remaining(31, HMO_THRESHOLDS) == Priority.NORMAL


def test_negative_days_are_always_critical():
    assert priority_for_days_remaining(-3, CERTIFICATE_THRESHOLDS) == Priority.CRITICAL


def test_overdue_priority_is_strictly_greater_than():
    assert priority_for_days_overdue(91) == Priority.CRITICAL
    assert priority_for_days_overdue(90) == Priority.HIGH
    assert priority_for_days_overdue(61) == Priority.HIGH
    assert priority_for_days_overdue(60) == Priority.NORMAL


def test_expiring_window_includes_both_ends():
    assert is_expiring_within(NOW, NOW, 30)
    assert is_expiring_within(NOW + timedelta(days=30), NOW, 30)
    assert not is_expiring_within(NOW + timedelta(days=30, seconds=1), NOW, 30)
    assert not is_expiring_within(None, NOW, 30)


def test_certificate_status_derived_from_expiry():
    assert derive_certificate_status(NOW - timedelta(days=1), NOW) == "expired"
    assert derive_certificate_status(NOW + timedelta(days=10), NOW) == "expiring"
    assert derive_certificate_status(NOW + timedelta(days=90), NOW) == "valid"


def test_risk_levels_by_score():
    assert risk_level_for_score(0) == RiskLevel.LOW
    assert risk_level_for_score(25) == RiskLevel.MEDIUM
    assert risk_level_for_score(26) == RiskLevel.HIGH
    assert risk_level_for_score(51) == RiskLevel.CRITICAL


def test_portfolio_risk_adds_weighted_factors():
    result = portfolio_risk_score(PortfolioCounts(expired_certificates=1, expiring_certificates=2))
    assert result.score == 50
    assert result.level == RiskLevel.HIGH
    assert [f.name for f in result.factors] == ["Expired Certificates", "Expiring Certificates (30 days)"]
    assert result.factors[1].severity == "high"


def test_portfolio_risk_is_clamped_to_100():
    result = portfolio_risk_score(PortfolioCounts(expired_certificates=3, fire_safety_noncompliant_hmo=2))
    assert result.score == 100
    assert result.to_dict()["risk_level"] == "critical"


def test_empty_portfolio_has_no_risk():
    result = portfolio_risk_score(PortfolioCounts())
    assert result.score == 0
    assert result.factors == []


def test_unknown_severity_sorts_last():
    assert severity_rank("critical") < severity_rank("high") < severity_rank("medium") < severity_rank("low")
    assert severity_rank("bogus") > severity_rank("low")

from datetime import datetime, timedelta

from utils import analytics_service


def test_risk_assessment_reports_factors(make, user, now):
    prop = make.property(user, is_hmo=True)
    make.certificate(prop, now - timedelta(days=1))
    make.certificate(prop, now + timedelta(days=10))
    make.hmo(prop, now + timedelta(days=200), fire_safety_compliant=False)

    risk = analytics_service.get_risk_assessment(user.id, now=now)

    assert risk["risk_score"] == 65
    assert risk["risk_level"] == "critical"
    assert [f["name"] for f in risk["risk_factors"]] == [
        "Expired Certificates",
        "Fire Safety Non-Compliance",
        "Expiring Certificates (30 days)",
    ]
    assert risk["summary"]["non_compliant_hmos"] == 1


def test_clean_portfolio_has_low_risk(make, user, now):
    make.certificate(make.property(user), now + timedelta(days=300))

    risk = analytics_service.get_risk_assessment(user.id, now=now)

    assert risk["risk_score"] == 0
    assert risk["risk_level"] == "low"
    assert risk["risk_factors"] == []


def test_portfolio_stats_counts_expiring_items(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=15))
    make.registration(prop, now + timedelta(days=50))
    make.hmo(prop, now + timedelta(days=90))

    stats = analytics_service.get_portfolio_stats(user.id, now=now)

    assert stats["total_compliance"] == 3
    assert stats["total_expiring"] == 2


def test_expiry_timeline_is_sorted_by_days_remaining(make, user, now):
    prop = make.property(user)
    make.hmo(prop, now + timedelta(days=80))
    make.certificate(prop, now + timedelta(days=4))
    make.certificate(prop, now + timedelta(days=120))

    timeline = analytics_service.get_expiry_timeline(user.id, now=now)

    assert [(entry["type"], entry["days_until_expiry"]) for entry in timeline] == [("certificate", 4), ("hmo", 80)]


def test_expiry_timeline_derives_certificate_status_from_dates(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=4), status="valid")
    make.certificate(prop, now + timedelta(days=50), status="expired")

    timeline = analytics_service.get_expiry_timeline(user.id, now=now)

    assert [entry["status"] for entry in timeline] == ["expiring", "valid"]


def test_cost_summary_groups_fees_by_council(make, user, now):
    edinburgh = make.property(user)
    glasgow = make.property(user, council_area="Glasgow City")
    make.registration(edinburgh, now + timedelta(days=300), renewal_fee=100.0)
    make.registration(glasgow, now + timedelta(days=300), renewal_fee=80.0)
    make.hmo(glasgow, now + timedelta(days=300), annual_fee=500.0)

    costs = analytics_service.get_cost_summary(user.id, now=now)

    assert costs["total_costs"] == 680.0
    assert costs["average_registration_fee"] == 90.0
    by_council = {row["council"]: row["cost"] for row in costs["costs_by_council"]}
    assert by_council == {"City of Edinburgh": 100.0, "Glasgow City": 580.0}
    assert len(costs["monthly_breakdown"]) == 6


def test_trends_bucket_by_creation_month(make, user):
    now = datetime(2025, 3, 15)
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=100), created_at=datetime(2025, 2, 10))
    make.certificate(prop, now + timedelta(days=100), created_at=datetime(2025, 3, 1))

    trends = analytics_service.get_compliance_trends(user.id, now=now)

    assert [t["month"] for t in trends][-2:] == ["Feb 2025", "Mar 2025"]
    assert [t["certificates"] for t in trends][-2:] == [1, 1]
    assert trends[0]["month"] == "Oct 2024"


def test_certificate_breakdown_labels_types(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=100), certificate_type="gas_safety")
    make.certificate(prop, now + timedelta(days=100), certificate_type="gas_safety")

    assert analytics_service.get_certificate_breakdown(user.id) == [{"type": "GAS SAFETY", "count": 2}]

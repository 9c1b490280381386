from datetime import timedelta

import pytest

from models import AMLScreening, Lease, MaintenanceRequest, Transaction
from utils import dashboard_service
from utils.errors import ValidationError


def test_empty_portfolio_is_fully_compliant(user, now):
    overview = dashboard_service.get_overview(user.id, now=now)
    assert overview["overview"]["score"] == 100
    assert overview["overview"]["total_items"] == 0


def test_all_expired_scores_zero(make, user, now):
    prop = make.property(user, is_hmo=True)
    make.certificate(prop, now - timedelta(days=1))
    make.registration(prop, now - timedelta(days=3))
    make.hmo(prop, now - timedelta(days=10))

    overview = dashboard_service.get_overview(user.id, now=now)

    assert overview["overview"]["score"] == 0
    assert overview["certificates"]["expired"] == 1
    assert overview["registrations"]["expired"] == 1
    assert overview["hmo"]["expired"] == 1


def test_expiry_is_recomputed_not_read_from_status(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now - timedelta(days=1), status="valid")

    overview = dashboard_service.get_overview(user.id, now=now)

    assert overview["certificates"]["expired"] == 1


def test_mixed_portfolio_score_rounds_half_up(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=200))
    make.certificate(prop, now - timedelta(days=1))
    make.certificate(prop, now + timedelta(days=100))
    make.assessment(prop, ["compliant"] * 7 + ["non_compliant"] * 3)
    make.assessment(prop, ["compliant"])
    make.assessment(prop, ["compliant"])
    make.assessment(prop, ["compliant"])
    make.assessment(prop, ["compliant"])

    overview = dashboard_service.get_overview(user.id, now=now)

    # 6 of 8 compliant -> 75
    assert overview["overview"]["total_items"] == 8
    assert overview["overview"]["score"] == 75


def test_only_approved_registrations_count(make, user, now):
    prop = make.property(user)
    make.registration(prop, now + timedelta(days=300), status="pending")

    overview = dashboard_service.get_overview(user.id, now=now)

    assert overview["registrations"]["active"] == 0
    assert overview["overview"]["score"] == 100


def test_other_users_data_is_excluded(make, user, now):
    stranger_property = make.property(make.user())
    make.certificate(stranger_property, now - timedelta(days=1))

    overview = dashboard_service.get_overview(user.id, now=now)

    assert overview["certificates"]["total"] == 0


def test_critical_issues_ordered_by_severity(db, make, user, now):
    prop = make.property(user, is_hmo=True)
    make.certificate(prop, now + timedelta(days=10))
    make.certificate(prop, now - timedelta(days=5))
    make.hmo(prop, now + timedelta(days=300), fire_safety_compliant=False)
    db.session.add(AMLScreening(user_id=user.id, subject_type="INDIVIDUAL", subject_name="Jo Bloggs", status="REQUIRES_REVIEW"))
    db.session.commit()

    issues = dashboard_service.get_critical_issues(user.id, now=now)

    assert [i["type"] for i in issues] == [
        "expired_certificates",
        "hmo_fire_safety",
        "pending_aml_review",
        "expiring_certificates",
    ]
    assert issues[0]["message"] == "1 certificate expired"


def test_emergency_maintenance_is_critical(db, make, user, now):
    prop = make.property(user)
    db.session.add(
        MaintenanceRequest(property_id=prop.id, user_id=user.id, title="Burst pipe", priority="EMERGENCY", status="SUBMITTED")
    )
    db.session.commit()

    issues = dashboard_service.get_critical_issues(user.id, now=now)

    assert issues[0]["type"] == "critical_maintenance"
    assert issues[0]["severity"] == "critical"


def test_deadlines_sorted_with_urgency(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=20))
    make.registration(prop, now + timedelta(days=3))
    make.certificate(prop, now + timedelta(days=90))

    deadlines = dashboard_service.get_upcoming_deadlines(user.id, days=30, now=now)

    assert [d["type"] for d in deadlines] == ["registration", "certificate"]
    assert [d["urgency"] for d in deadlines] == ["critical", "warning"]
    assert isinstance(deadlines[0]["date"], str)


def test_deadline_bounds_are_validated(user):
    with pytest.raises(ValidationError):
        dashboard_service.get_upcoming_deadlines(user.id, days=0)
    with pytest.raises(ValidationError):
        dashboard_service.get_upcoming_deadlines(user.id, limit=51)


def test_recent_activity_is_newest_first(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=100))

    activity = dashboard_service.get_recent_activity(user.id, limit=10)

    assert {a["type"] for a in activity} == {"property", "certificate"}
    timestamps = [a["timestamp"] for a in activity]
    assert timestamps == sorted(timestamps, reverse=True)


def test_portfolio_summary_groups_properties(make, user):
    make.property(user, council_area="Glasgow City")
    make.property(user, council_area="Glasgow City", property_type="house")
    make.property(user)

    summary = dashboard_service.get_portfolio_summary(user.id)

    assert summary["total_properties"] == 3
    councils = {row["council"]: row["count"] for row in summary["council_distribution"]}
    assert councils == {"Glasgow City": 2, "City of Edinburgh": 1}


def test_overview_counts_leases_and_month_finances(db, make, user, now):
    prop = make.property(user)
    db.session.add_all(
        [
            Lease(property_id=prop.id, user_id=user.id, start_date=now - timedelta(days=200), end_date=now + timedelta(days=20), status="EXPIRING_SOON"),
            Lease(property_id=prop.id, user_id=user.id, start_date=now - timedelta(days=30), end_date=now + timedelta(days=335), status="ACTIVE"),
            Transaction(property_id=prop.id, user_id=user.id, type="INCOME", category="rent", amount=950.0, date=now, description="March rent"),
            Transaction(property_id=prop.id, user_id=user.id, type="EXPENSE", category="repairs", amount=120.0, date=now, description="Boiler service"),
            Transaction(property_id=prop.id, user_id=user.id, type="INCOME", category="rent", amount=950.0, date=now - timedelta(days=40), description="January rent"),
            Transaction(property_id=prop.id, user_id=user.id, type="EXPENSE", category="fees", amount=55.0, date=now, description="Agent fee", status="PENDING"),
        ]
    )
    db.session.commit()

    overview = dashboard_service.get_overview(user.id, now=now)

    assert overview["leases"] == {"total": 2, "active": 1, "expiring": 1, "expired": 0}
    assert overview["finances"] == {"income": 950.0, "expenses": 120.0, "net": 830.0, "pending_transactions": 1}

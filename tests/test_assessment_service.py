from datetime import timedelta

import pytest

from utils import assessment_service
from utils.errors import NotFoundError, ValidationError


def test_new_assessment_has_full_checklist(make, user):
    prop = make.property(user)
    assessment = assessment_service.create_assessment(user.id, prop.id)
    assert len(assessment.items) == len(assessment_service.CHECKPOINTS) == 21
    assert assessment.score == 0
    assert assessment.overall_status == "pending"


def test_create_assessment_requires_owned_property(make, user):
    stranger_property = make.property(make.user())
    with pytest.raises(NotFoundError):
        assessment_service.create_assessment(user.id, stranger_property.id)


def test_seven_of_ten_compliant_with_failures_is_non_compliant(make, user):
    prop = make.property(user)
    assessment = make.assessment(prop, ["compliant"] * 7 + ["non_compliant"] * 3)
    assert assessment.score == 70
    assert assessment.overall_status == "non_compliant"


def test_partial_progress_without_failures_is_in_progress(make, user):
    prop = make.property(user)
    assessment = make.assessment(prop, ["completed", "pending", "in_progress"])
    assert assessment.score == 33
    assert assessment.overall_status == "in_progress"


def test_score_rounds_half_up(make, user):
    prop = make.property(user)
    # 1 of 8 -> 12.5 -> 13
    assessment = make.assessment(prop, ["compliant"] + ["pending"] * 7)
    assert assessment.score == 13


def test_updating_items_recomputes_score(make, user):
    prop = make.property(user)
    assessment = make.assessment(prop, ["pending", "pending"])

    for item in list(assessment.items):
        updated = assessment_service.update_item(user.id, item.id, {"status": "completed"})
        assert updated.completed_date is not None

    assert assessment.score == 100
    assert assessment.overall_status == "compliant"


def test_update_item_rejects_unknown_fields_and_values(make, user):
    prop = make.property(user)
    item = make.assessment(prop, ["pending"]).items[0]
    with pytest.raises(ValidationError):
        assessment_service.update_item(user.id, item.id, {"status": "fixed"})
    with pytest.raises(ValidationError):
        assessment_service.update_item(user.id, item.id, {"owner": "someone"})


def test_add_and_delete_item_keep_score_in_sync(make, user):
    prop = make.property(user)
    assessment = make.assessment(prop, ["compliant"])

    item = assessment_service.add_item(
        user.id, assessment.id, {"category": "heating", "description": "Radiator in bedroom cold"}
    )
    assert assessment.score == 50
    assert item.category == "HEATING"

    assessment_service.delete_item(user.id, item.id)
    assert assessment.score == 100


def test_breakdown_groups_by_category(make, user):
    prop = make.property(user)
    assessment = make.assessment(prop, ["compliant", "non_compliant", "pending"])
    breakdown = assessment_service.compliance_breakdown(user.id, assessment.id)
    assert breakdown["by_category"]["SAFETY"] == {"total": 3, "compliant": 1, "non_compliant": 1, "pending": 1}
    assert breakdown["compliance_percentage"] == 33


def test_sync_certificates_marks_matching_items(make, user, now):
    prop = make.property(user)
    assessment = assessment_service.create_assessment(user.id, prop.id)
    make.certificate(prop, now - timedelta(days=2), certificate_type="gas_safety")
    make.certificate(prop, now + timedelta(days=200), certificate_type="eicr")

    synced = assessment_service.sync_certificates(user.id, assessment.id, now=now)

    by_title = {item.description.split(":")[0]: item for item in synced.items}
    assert by_title["Gas Safety"].status == "non_compliant"
    assert by_title["Electrical Safety"].status == "compliant"
    assert synced.overall_status == "non_compliant"


def test_stats_count_by_status(make, user):
    prop = make.property(user)
    make.assessment(prop, ["compliant"])
    make.assessment(prop, ["compliant", "non_compliant"])
    stats = assessment_service.assessment_stats(user.id)
    assert stats["total_assessments"] == 2
    assert stats["compliant_assessments"] == 1
    assert stats["non_compliant_assessments"] == 1

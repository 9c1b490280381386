from datetime import datetime, timedelta

import pytest

from app import create_app
from extensions import db as _db
from models import (
    Certificate,
    HMOLicense,
    LandlordRegistration,
    Property,
    RepairItem,
    RepairingStandardAssessment,
    User,
)
from utils.mailer import MailResult

NOW = datetime(2025, 3, 1, 9, 0, 0)


class FakeMailer:
    """Records sends instead of talking to SMTP."""

    def __init__(self, fail: bool = False, raises: bool = False) -> None:
        self.fail = fail
        self.raises = raises
        self.sent = []

    def send(self, to, subject, html, text=None):
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        if self.raises:
            raise RuntimeError("transport exploded")
        if self.fail:
            return MailResult(success=False, error="SMTP unavailable")
        return MailResult(success=True, message_id=f"fake-{len(self.sent)}")


class Factory:
    def __init__(self, session) -> None:
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(self, **overrides) -> User:
        n = self._next()
        user = User(name=overrides.pop("name", f"Landlord {n}"), email=overrides.pop("email", f"landlord{n}@example.com"))
        for key, value in overrides.items():
            setattr(user, key, value)
        self.session.add(user)
        self.session.commit()
        return user

    def property(self, owner: User, **overrides) -> Property:
        n = self._next()
        prop = Property(
            owner_id=owner.id,
            address=overrides.pop("address", f"{n} Leith Walk, Edinburgh"),
            postcode=overrides.pop("postcode", "EH6 8NS"),
            council_area=overrides.pop("council_area", "City of Edinburgh"),
            **overrides,
        )
        self.session.add(prop)
        self.session.commit()
        return prop

    def certificate(self, prop: Property, expiry: datetime, certificate_type: str = "gas_safety", **overrides) -> Certificate:
        cert = Certificate(
            property_id=prop.id,
            user_id=prop.owner_id,
            certificate_type=certificate_type,
            issue_date=expiry - timedelta(days=365),
            expiry_date=expiry,
            **overrides,
        )
        self.session.add(cert)
        self.session.commit()
        return cert

    def registration(self, prop: Property, expiry: datetime, status: str = "approved", **overrides) -> LandlordRegistration:
        reg = LandlordRegistration(
            property_id=prop.id,
            user_id=prop.owner_id,
            council_area=prop.council_area,
            registration_number=overrides.pop("registration_number", f"REG-{self._next()}"),
            expiry_date=expiry,
            status=status,
            **overrides,
        )
        self.session.add(reg)
        self.session.commit()
        return reg

    def hmo(self, prop: Property, expiry: datetime, **overrides) -> HMOLicense:
        lic = HMOLicense(
            property_id=prop.id,
            user_id=prop.owner_id,
            council_area=prop.council_area,
            license_number=overrides.pop("license_number", f"HMO-{self._next()}"),
            expiry_date=expiry,
            status=overrides.pop("status", "approved"),
            **overrides,
        )
        self.session.add(lic)
        self.session.commit()
        return lic

    def assessment(self, prop: Property, statuses, created_at: datetime = None) -> RepairingStandardAssessment:
        from utils.assessment_service import recalculate_assessment

        assessment = RepairingStandardAssessment(property_id=prop.id, user_id=prop.owner_id)
        if created_at is not None:
            assessment.created_at = created_at
        assessment.items = [
            RepairItem(category="SAFETY", description=f"Checkpoint {i}", status=status)
            for i, status in enumerate(statuses)
        ]
        recalculate_assessment(assessment)
        self.session.add(assessment)
        self.session.commit()
        return assessment


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_LOG_DIR", str(tmp_path / "logs"))
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make(db):
    return Factory(db.session)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def user(make):
    return make.user()


@pytest.fixture
def client(app, user):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["_user_id"] = user.id
        sess["_fresh"] = True
    return client

"""Core data models for properties, compliance records, AML screening, and notifications."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


def _iso(value):
	return value.isoformat() if value is not None else None


def _in_clause(column: str, values: tuple[str, ...]) -> str:
	quoted = ",".join(f"'{v}'" for v in values)
	return f"{column} IN ({quoted})"


USER_ROLES: tuple[str, ...] = (
	"LANDLORD",
	"AGENT",
	"ADMIN",
)

EMAIL_FREQUENCIES: tuple[str, ...] = (
	"immediate",
	"daily",
	"weekly",
	"disabled",
)

CERTIFICATE_TYPES: tuple[str, ...] = (
	"gas_safety",
	"eicr",
	"epc",
	"pat",
	"fire_safety",
	"legionella",
	"other",
)

CERTIFICATE_STATUSES: tuple[str, ...] = (
	"valid",
	"expiring",
	"expired",
)

LICENSE_STATUSES: tuple[str, ...] = (
	"pending",
	"approved",
	"expired",
	"rejected",
)

ASSESSMENT_STATUSES: tuple[str, ...] = (
	"pending",
	"in_progress",
	"compliant",
	"non_compliant",
	"completed",
)

REPAIR_ITEM_STATUSES: tuple[str, ...] = (
	"pending",
	"compliant",
	"non_compliant",
	"in_progress",
	"completed",
)

REPAIR_ITEM_PRIORITIES: tuple[str, ...] = (
	"low",
	"medium",
	"high",
	"critical",
)

SUBJECT_TYPES: tuple[str, ...] = (
	"INDIVIDUAL",
	"COMPANY",
)

SCREENING_STATUSES: tuple[str, ...] = (
	"PENDING",
	"IN_PROGRESS",
	"COMPLETED",
	"FAILED",
	"REQUIRES_REVIEW",
)

RISK_LEVELS: tuple[str, ...] = (
	"LOW",
	"MEDIUM",
	"HIGH",
	"CRITICAL",
)

REVIEW_STATUSES: tuple[str, ...] = (
	"PENDING",
	"APPROVED",
	"REJECTED",
	"ESCALATED",
)

MATCH_TYPES: tuple[str, ...] = (
	"SANCTIONS",
	"PEP",
	"ADVERSE_MEDIA",
)

MATCH_DECISIONS: tuple[str, ...] = (
	"ACCEPT",
	"REJECT",
)

MAINTENANCE_PRIORITIES: tuple[str, ...] = (
	"LOW",
	"MEDIUM",
	"HIGH",
	"EMERGENCY",
)

MAINTENANCE_STATUSES: tuple[str, ...] = (
	"SUBMITTED",
	"SCHEDULED",
	"IN_PROGRESS",
	"COMPLETED",
	"CANCELLED",
)

LEASE_STATUSES: tuple[str, ...] = (
	"DRAFT",
	"ACTIVE",
	"EXPIRING_SOON",
	"EXPIRED",
	"TERMINATED",
)

TRANSACTION_TYPES: tuple[str, ...] = (
	"INCOME",
	"EXPENSE",
)

TRANSACTION_STATUSES: tuple[str, ...] = (
	"PENDING",
	"COMPLETED",
	"CANCELLED",
)

NOTIFICATION_TYPES: tuple[str, ...] = (
	"certificate_expiring",
	"hmo_expiring",
	"registration_expiring",
	"assessment_due",
	"system",
)

NOTIFICATION_PRIORITIES: tuple[str, ...] = (
	"low",
	"normal",
	"high",
	"critical",
)

EMAIL_TYPES: tuple[str, ...] = (
	"CERTIFICATE_EXPIRY",
	"REGISTRATION_EXPIRY",
	"HMO_EXPIRY",
	"ASSESSMENT_DUE",
	"SYSTEM",
)

EMAIL_DELIVERY_STATUSES: tuple[str, ...] = (
	"SENT",
	"FAILED",
)


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(150), nullable=False)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=True)
	role = db.Column(db.String(20), nullable=False, default="LANDLORD")
	email_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)
	email_frequency = db.Column(db.String(20), nullable=False, default="daily")
	last_notification_sent = db.Column(db.DateTime, nullable=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("role", USER_ROLES), name="ck_user_role"),
		db.CheckConstraint(_in_clause("email_frequency", EMAIL_FREQUENCIES), name="ck_user_email_frequency"),
	)

	properties = db.relationship("Property", back_populates="owner", lazy="dynamic")
	notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
	notification_preference = db.relationship("NotificationPreference", back_populates="user", uselist=False)

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return bool(self.password_hash) and check_password_hash(self.password_hash, password)


class NotificationPreference(db.Model):
	__tablename__ = "notification_preferences"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, unique=True)
	email_enabled = db.Column(db.Boolean, nullable=False, default=True)
	in_app_enabled = db.Column(db.Boolean, nullable=False, default=True)
	certificate_expiry_enabled = db.Column(db.Boolean, nullable=False, default=True)
	assessment_due_enabled = db.Column(db.Boolean, nullable=False, default=True)
	hmo_expiry_enabled = db.Column(db.Boolean, nullable=False, default=True)
	registration_expiry_enabled = db.Column(db.Boolean, nullable=False, default=True)
	system_alerts_enabled = db.Column(db.Boolean, nullable=False, default=True)
	email_frequency = db.Column(db.String(20), nullable=False, default="immediate")
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("email_frequency", ("immediate", "daily", "weekly")), name="ck_pref_email_frequency"),
	)

	user = db.relationship("User", back_populates="notification_preference")

	# Notification type -> toggle column
	TYPE_TOGGLES = {
		"certificate_expiring": "certificate_expiry_enabled",
		"hmo_expiring": "hmo_expiry_enabled",
		"registration_expiring": "registration_expiry_enabled",
		"assessment_due": "assessment_due_enabled",
		"system": "system_alerts_enabled",
	}

	def allows(self, notification_type: str) -> bool:
		if not self.in_app_enabled:
			return False
		toggle = self.TYPE_TOGGLES.get(notification_type)
		return bool(getattr(self, toggle)) if toggle else True

	def to_dict(self) -> dict:
		return {
			"email_enabled": self.email_enabled,
			"in_app_enabled": self.in_app_enabled,
			"certificate_expiry_enabled": self.certificate_expiry_enabled,
			"assessment_due_enabled": self.assessment_due_enabled,
			"hmo_expiry_enabled": self.hmo_expiry_enabled,
			"registration_expiry_enabled": self.registration_expiry_enabled,
			"system_alerts_enabled": self.system_alerts_enabled,
			"email_frequency": self.email_frequency,
		}


class Property(db.Model):
	__tablename__ = "properties"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	owner_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	address = db.Column(db.String(500), nullable=False)
	postcode = db.Column(db.String(12), nullable=False, index=True)
	council_area = db.Column(db.String(120), nullable=False, index=True)
	property_type = db.Column(db.String(50), nullable=False, default="flat")
	bedrooms = db.Column(db.Integer, nullable=False, default=1)
	is_hmo = db.Column(db.Boolean, nullable=False, default=False)
	hmo_occupancy = db.Column(db.Integer, nullable=True)
	tenancy_status = db.Column(db.String(30), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	owner = db.relationship("User", back_populates="properties")
	certificates = db.relationship("Certificate", back_populates="property", cascade="all, delete-orphan")
	registrations = db.relationship("LandlordRegistration", back_populates="property", cascade="all, delete-orphan")
	hmo_licenses = db.relationship("HMOLicense", back_populates="property", cascade="all, delete-orphan")
	assessments = db.relationship("RepairingStandardAssessment", back_populates="property", cascade="all, delete-orphan")
	maintenance_requests = db.relationship("MaintenanceRequest", back_populates="property", cascade="all, delete-orphan")
	leases = db.relationship("Lease", back_populates="property", cascade="all, delete-orphan")
	transactions = db.relationship("Transaction", back_populates="property", cascade="all, delete-orphan")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"address": self.address,
			"postcode": self.postcode,
			"council_area": self.council_area,
			"property_type": self.property_type,
			"bedrooms": self.bedrooms,
			"is_hmo": self.is_hmo,
			"created_at": _iso(self.created_at),
		}


class Certificate(db.Model):
	__tablename__ = "certificates"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	certificate_type = db.Column(db.String(30), nullable=False, index=True)
	issue_date = db.Column(db.DateTime, nullable=False)
	expiry_date = db.Column(db.DateTime, nullable=False, index=True)
	provider_name = db.Column(db.String(255), nullable=True)
	provider_contact = db.Column(db.String(120), nullable=True)
	# Advisory cache; expiry state is always recomputed from expiry_date.
	status = db.Column(db.String(20), nullable=False, default="valid")
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("certificate_type", CERTIFICATE_TYPES), name="ck_certificate_type"),
		db.CheckConstraint(_in_clause("status", CERTIFICATE_STATUSES), name="ck_certificate_status"),
	)

	property = db.relationship("Property", back_populates="certificates")

	def type_label(self) -> str:
		return self.certificate_type.upper().replace("_", " ")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"property_id": self.property_id,
			"certificate_type": self.certificate_type,
			"issue_date": _iso(self.issue_date),
			"expiry_date": _iso(self.expiry_date),
			"provider_name": self.provider_name,
			"status": self.status,
		}


class LandlordRegistration(db.Model):
	__tablename__ = "landlord_registrations"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	council_area = db.Column(db.String(120), nullable=False, index=True)
	registration_number = db.Column(db.String(60), nullable=False)
	application_date = db.Column(db.DateTime, nullable=True)
	approval_date = db.Column(db.DateTime, nullable=True)
	expiry_date = db.Column(db.DateTime, nullable=False, index=True)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	renewal_fee = db.Column(db.Float, nullable=False, default=0.0)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", LICENSE_STATUSES), name="ck_registration_status"),
	)

	property = db.relationship("Property", back_populates="registrations")


class HMOLicense(db.Model):
	__tablename__ = "hmo_licenses"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	license_number = db.Column(db.String(60), nullable=False)
	council_area = db.Column(db.String(120), nullable=False, index=True)
	application_date = db.Column(db.DateTime, nullable=True)
	approval_date = db.Column(db.DateTime, nullable=True)
	expiry_date = db.Column(db.DateTime, nullable=False, index=True)
	occupancy_limit = db.Column(db.Integer, nullable=False, default=3)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	annual_fee = db.Column(db.Float, nullable=False, default=0.0)
	fire_safety_compliant = db.Column(db.Boolean, nullable=False, default=True)
	last_inspection_date = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", LICENSE_STATUSES), name="ck_hmo_status"),
		db.CheckConstraint("occupancy_limit >= 3", name="ck_hmo_occupancy_minimum"),
	)

	property = db.relationship("Property", back_populates="hmo_licenses")


class RepairingStandardAssessment(db.Model):
	__tablename__ = "repairing_standard_assessments"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	assessment_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	# Derived from items by recalculate_assessment; never set directly.
	overall_status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	score = db.Column(db.Integer, nullable=False, default=0)
	notes = db.Column(db.Text, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("overall_status", ASSESSMENT_STATUSES), name="ck_assessment_status"),
		db.CheckConstraint("score >= 0 AND score <= 100", name="ck_assessment_score_range"),
	)

	property = db.relationship("Property", back_populates="assessments")
	items = db.relationship(
		"RepairItem",
		back_populates="assessment",
		order_by="RepairItem.created_at",
		cascade="all, delete-orphan",
	)

	def to_dict(self, include_items: bool = False) -> dict:
		payload = {
			"id": self.id,
			"property_id": self.property_id,
			"property_address": self.property.address if self.property else None,
			"assessment_date": _iso(self.assessment_date),
			"overall_status": self.overall_status,
			"score": self.score,
			"notes": self.notes,
			"created_at": _iso(self.created_at),
		}
		if include_items:
			payload["items"] = [item.to_dict() for item in self.items]
		return payload


class RepairItem(db.Model):
	__tablename__ = "repair_items"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	assessment_id = db.Column(db.String(36), db.ForeignKey("repairing_standard_assessments.id"), nullable=False, index=True)
	category = db.Column(db.String(40), nullable=False, index=True)
	description = db.Column(db.String(500), nullable=False)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	priority = db.Column(db.String(20), nullable=False, default="medium")
	notes = db.Column(db.Text, nullable=True)
	evidence_url = db.Column(db.String(1024), nullable=True)
	due_date = db.Column(db.DateTime, nullable=True)
	completed_date = db.Column(db.DateTime, nullable=True)
	cost = db.Column(db.Float, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", REPAIR_ITEM_STATUSES), name="ck_repair_item_status"),
		db.CheckConstraint(_in_clause("priority", REPAIR_ITEM_PRIORITIES), name="ck_repair_item_priority"),
	)

	assessment = db.relationship("RepairingStandardAssessment", back_populates="items")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"assessment_id": self.assessment_id,
			"category": self.category,
			"description": self.description,
			"status": self.status,
			"priority": self.priority,
			"notes": self.notes,
			"due_date": _iso(self.due_date),
			"completed_date": _iso(self.completed_date),
			"cost": self.cost,
		}


class AMLScreening(db.Model):
	__tablename__ = "aml_screenings"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	subject_type = db.Column(db.String(20), nullable=False)
	subject_name = db.Column(db.String(255), nullable=False)
	subject_email = db.Column(db.String(255), nullable=True)
	subject_phone = db.Column(db.String(50), nullable=True)
	date_of_birth = db.Column(db.Date, nullable=True)
	nationality = db.Column(db.String(80), nullable=True)
	company_number = db.Column(db.String(40), nullable=True)
	notes = db.Column(db.Text, nullable=True)
	status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
	# Derived from matches when the screening completes.
	risk_score = db.Column(db.Integer, nullable=True)
	risk_level = db.Column(db.String(20), nullable=True, index=True)
	match_found = db.Column(db.Boolean, nullable=False, default=False)
	sanctions_match = db.Column(db.Boolean, nullable=False, default=False)
	pep_match = db.Column(db.Boolean, nullable=False, default=False)
	adverse_media = db.Column(db.Boolean, nullable=False, default=False)
	review_status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
	reviewed_at = db.Column(db.DateTime, nullable=True)
	reviewed_by = db.Column(db.String(36), nullable=True)
	edd_required = db.Column(db.Boolean, nullable=False, default=False)
	edd_completed = db.Column(db.Boolean, nullable=False, default=False)
	edd_notes = db.Column(db.Text, nullable=True)
	next_review_date = db.Column(db.DateTime, nullable=True, index=True)
	extra_metadata = db.Column("metadata", db.JSON, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("subject_type", SUBJECT_TYPES), name="ck_screening_subject_type"),
		db.CheckConstraint(_in_clause("status", SCREENING_STATUSES), name="ck_screening_status"),
		db.CheckConstraint(_in_clause("review_status", REVIEW_STATUSES), name="ck_screening_review_status"),
		db.CheckConstraint("risk_level IS NULL OR " + _in_clause("risk_level", RISK_LEVELS), name="ck_screening_risk_level"),
	)

	matches = db.relationship(
		"AMLMatch",
		back_populates="screening",
		order_by="AMLMatch.match_score.desc()",
		cascade="all, delete-orphan",
	)
	audits = db.relationship(
		"AMLAudit",
		back_populates="screening",
		order_by="AMLAudit.created_at.desc()",
		cascade="all, delete-orphan",
	)

	def to_dict(self, include_matches: bool = False) -> dict:
		payload = {
			"id": self.id,
			"subject_type": self.subject_type,
			"subject_name": self.subject_name,
			"subject_email": self.subject_email,
			"nationality": self.nationality,
			"company_number": self.company_number,
			"status": self.status,
			"risk_score": self.risk_score,
			"risk_level": self.risk_level,
			"match_found": self.match_found,
			"sanctions_match": self.sanctions_match,
			"pep_match": self.pep_match,
			"adverse_media": self.adverse_media,
			"review_status": self.review_status,
			"reviewed_at": _iso(self.reviewed_at),
			"edd_required": self.edd_required,
			"edd_completed": self.edd_completed,
			"edd_notes": self.edd_notes,
			"next_review_date": _iso(self.next_review_date),
			"match_count": len(self.matches),
			"created_at": _iso(self.created_at),
		}
		if include_matches:
			payload["matches"] = [m.to_dict() for m in self.matches]
			payload["audits"] = [a.to_dict() for a in self.audits[:20]]
		return payload


class AMLMatch(db.Model):
	__tablename__ = "aml_matches"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	screening_id = db.Column(db.String(36), db.ForeignKey("aml_screenings.id"), nullable=False, index=True)
	match_type = db.Column(db.String(20), nullable=False, index=True)
	entity_name = db.Column(db.String(255), nullable=False)
	match_score = db.Column(db.Integer, nullable=False)
	list_name = db.Column(db.String(255), nullable=True)
	list_type = db.Column(db.String(50), nullable=True)
	aliases = db.Column(db.JSON, nullable=False, default=list)
	nationality = db.Column(db.JSON, nullable=False, default=list)
	positions = db.Column(db.JSON, nullable=False, default=list)
	review_status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
	decision = db.Column(db.String(10), nullable=True)
	review_notes = db.Column(db.Text, nullable=True)
	reviewed_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("match_type", MATCH_TYPES), name="ck_match_type"),
		db.CheckConstraint("match_score >= 0 AND match_score <= 100", name="ck_match_score_range"),
		db.CheckConstraint(_in_clause("review_status", REVIEW_STATUSES), name="ck_match_review_status"),
		db.CheckConstraint("decision IS NULL OR " + _in_clause("decision", MATCH_DECISIONS), name="ck_match_decision"),
	)

	screening = db.relationship("AMLScreening", back_populates="matches")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"match_type": self.match_type,
			"entity_name": self.entity_name,
			"match_score": self.match_score,
			"list_name": self.list_name,
			"review_status": self.review_status,
			"decision": self.decision,
			"review_notes": self.review_notes,
			"reviewed_at": _iso(self.reviewed_at),
		}


class AMLAudit(db.Model):
	__tablename__ = "aml_audits"

	id = db.Column(db.Integer, primary_key=True)
	screening_id = db.Column(db.String(36), db.ForeignKey("aml_screenings.id"), nullable=False, index=True)
	action = db.Column(db.String(50), nullable=False, index=True)
	performed_by = db.Column(db.String(36), nullable=False)
	description = db.Column(db.String(500), nullable=False)
	old_value = db.Column(db.JSON, nullable=True)
	new_value = db.Column(db.JSON, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	screening = db.relationship("AMLScreening", back_populates="audits")

	def to_dict(self) -> dict:
		return {
			"action": self.action,
			"performed_by": self.performed_by,
			"description": self.description,
			"created_at": _iso(self.created_at),
		}


class MaintenanceRequest(db.Model):
	__tablename__ = "maintenance_requests"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	category = db.Column(db.String(30), nullable=False, default="OTHER")
	priority = db.Column(db.String(20), nullable=False, default="MEDIUM", index=True)
	status = db.Column(db.String(20), nullable=False, default="SUBMITTED", index=True)
	title = db.Column(db.String(200), nullable=False)
	description = db.Column(db.Text, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("priority", MAINTENANCE_PRIORITIES), name="ck_maintenance_priority"),
		db.CheckConstraint(_in_clause("status", MAINTENANCE_STATUSES), name="ck_maintenance_status"),
	)

	property = db.relationship("Property", back_populates="maintenance_requests")


class Lease(db.Model):
	__tablename__ = "leases"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	tenant_name = db.Column(db.String(150), nullable=True)
	start_date = db.Column(db.DateTime, nullable=False)
	end_date = db.Column(db.DateTime, nullable=False, index=True)
	rent_amount = db.Column(db.Float, nullable=False, default=0.0)
	deposit_amount = db.Column(db.Float, nullable=False, default=0.0)
	status = db.Column(db.String(20), nullable=False, default="DRAFT", index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", LEASE_STATUSES), name="ck_lease_status"),
	)

	property = db.relationship("Property", back_populates="leases")


class Transaction(db.Model):
	__tablename__ = "transactions"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	property_id = db.Column(db.String(36), db.ForeignKey("properties.id"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	type = db.Column(db.String(10), nullable=False, index=True)
	category = db.Column(db.String(60), nullable=False)
	amount = db.Column(db.Float, nullable=False)
	date = db.Column(db.DateTime, nullable=False, index=True)
	description = db.Column(db.String(500), nullable=False)
	status = db.Column(db.String(20), nullable=False, default="COMPLETED")
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(_in_clause("type", TRANSACTION_TYPES), name="ck_transaction_type"),
		db.CheckConstraint(_in_clause("status", TRANSACTION_STATUSES), name="ck_transaction_status"),
	)

	property = db.relationship("Property", back_populates="transactions")


class Notification(db.Model):
	__tablename__ = "notifications"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	type = db.Column(db.String(40), nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	message = db.Column(db.String(1000), nullable=False)
	link = db.Column(db.String(500), nullable=True)
	priority = db.Column(db.String(20), nullable=False, default="normal", index=True)
	read = db.Column(db.Boolean, nullable=False, default=False, index=True)
	read_at = db.Column(db.DateTime, nullable=True)
	# Carries the source entity id used for suppression lookups.
	extra_metadata = db.Column("metadata", db.JSON, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("type", NOTIFICATION_TYPES), name="ck_notification_type"),
		db.CheckConstraint(_in_clause("priority", NOTIFICATION_PRIORITIES), name="ck_notification_priority"),
		db.Index("ix_notification_user_type_created", "user_id", "type", "created_at"),
	)

	user = db.relationship("User", back_populates="notifications")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"type": self.type,
			"title": self.title,
			"message": self.message,
			"link": self.link,
			"priority": self.priority,
			"read": self.read,
			"read_at": _iso(self.read_at),
			"metadata": self.extra_metadata or {},
			"created_at": _iso(self.created_at),
		}


class EmailLog(db.Model):
	__tablename__ = "email_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	notification_id = db.Column(db.String(36), db.ForeignKey("notifications.id"), nullable=True, index=True)
	to_address = db.Column(db.String(255), nullable=False)
	from_address = db.Column(db.String(255), nullable=False)
	subject = db.Column(db.String(255), nullable=False)
	body = db.Column(db.Text, nullable=False)
	html_body = db.Column(db.Text, nullable=False)
	type = db.Column(db.String(30), nullable=False, index=True)
	status = db.Column(db.String(10), nullable=False, index=True)
	provider_message_id = db.Column(db.String(255), nullable=True)
	error_message = db.Column(db.Text, nullable=True)
	sent_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	extra_metadata = db.Column("metadata", db.JSON, nullable=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("type", EMAIL_TYPES), name="ck_email_type"),
		db.CheckConstraint(_in_clause("status", EMAIL_DELIVERY_STATUSES), name="ck_email_status"),
		db.Index("ix_email_user_sent", "user_id", "sent_at"),
	)

	user = db.relationship("User")
	notification = db.relationship("Notification")

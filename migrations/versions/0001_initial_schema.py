"""Create tenants, accounts, persons, applications and verification tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if with_updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
                server_onupdate=sa.func.now(),
            )
        )
    return columns


def _tenant_fk() -> sa.Column:
    return sa.Column(
        "tenant_id",
        sa.String(),
        sa.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )

    op.create_table(
        "persons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name_1", sa.String(length=100), nullable=True),
        sa.Column("last_name_2", sa.String(length=100), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=1), nullable=True),
        sa.Column("nationality", sa.String(length=3), nullable=True),
        sa.Column("curp", sa.String(length=18), nullable=True),
        sa.Column("rfc", sa.String(length=13), nullable=True),
        sa.Column("kyc_status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("kyc_verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("kyc_verified_by", sa.String(length=100), nullable=True),
        sa.Column("kyc_data", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "kyc_status IN ('PENDING', 'IN_PROGRESS', 'VERIFIED', 'REJECTED', 'EXPIRED')",
            name="ck_persons_kyc_status",
        ),
    )
    op.create_index("ix_persons_tenant_id", "persons", ["tenant_id"])
    op.create_index("ix_persons_curp", "persons", ["curp"])

    op.create_table(
        "staff_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="ANALYST"),
        sa.Column("permissions", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_superuser", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "email", name="uq_staff_accounts_tenant_email"),
        sa.CheckConstraint(
            "role IN ('ADMIN', 'SUPERVISOR', 'ANALYST', 'VIEWER')",
            name="ck_staff_accounts_role",
        ),
    )
    op.create_index("ix_staff_accounts_tenant_id", "staff_accounts", ["tenant_id"])

    op.create_table(
        "applicant_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "person_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("persons.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("email_verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "phone", name="uq_applicant_accounts_tenant_phone"),
    )
    op.create_index("ix_applicant_accounts_tenant_id", "applicant_accounts", ["tenant_id"])
    op.create_index("ix_applicant_accounts_person_id", "applicant_accounts", ["person_id"])

    op.create_table(
        "person_identifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "person_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("persons.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("identifier_value", sa.LargeBinary(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("verification_method", sa.String(length=40), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN ('CURP', 'RFC', 'INE', 'PASSPORT', 'DRIVER_LICENSE')",
            name="ck_person_identifications_type",
        ),
        sa.CheckConstraint(
            "status IN ('PENDING', 'VERIFIED', 'REJECTED', 'EXPIRED', 'SUPERSEDED')",
            name="ck_person_identifications_status",
        ),
    )
    op.create_index("ix_person_identifications_tenant_id", "person_identifications", ["tenant_id"])
    op.create_index(
        "ix_person_identifications_person_type_current",
        "person_identifications",
        ["person_id", "type", "is_current"],
    )

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "person_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("persons.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("requested_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("requested_term_months", sa.Integer(), nullable=False),
        sa.Column("interest_rate", sa.Numeric(7, 4), nullable=True),
        sa.Column("decision", sa.String(length=20), nullable=True),
        sa.Column("decision_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("decision_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
        sa.Column("approved_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("approved_term_months", sa.Integer(), nullable=True),
        sa.Column("approved_interest_rate", sa.Numeric(7, 4), nullable=True),
        sa.Column("approved_monthly_payment", sa.Numeric(14, 2), nullable=True),
        sa.Column("rejection_reason", sa.String(length=100), nullable=True),
        sa.Column("counter_offer", postgresql.JSONB(), nullable=True),
        sa.Column("counter_offer_accepted", sa.Boolean(), nullable=True),
        sa.Column("counter_offer_responded_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "assigned_to",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("staff_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "assigned_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("staff_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("assigned_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("risk_level", sa.String(length=20), nullable=True),
        sa.Column("risk_data", postgresql.JSONB(), nullable=True),
        sa.Column(
            "verification_checklist",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("disbursed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("synced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status_changed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status_changed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status_changed_by_type", sa.String(length=20), nullable=True),
        sa.Column("external_id", sa.String(length=100), nullable=True),
        sa.Column("external_system", sa.String(length=50), nullable=True),
        sa.Column("sync_data", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'IN_REVIEW', 'DOCS_PENDING', 'CORRECTIONS_PENDING', "
            "'COUNTER_OFFERED', 'APPROVED', 'REJECTED', 'CANCELLED', 'DISBURSED', 'ACTIVE', "
            "'COMPLETED', 'DEFAULT', 'SYNCED')",
            name="ck_applications_status",
        ),
        sa.CheckConstraint(
            "(person_id IS NOT NULL) OR (company_id IS NOT NULL)",
            name="ck_applications_applicant_ref",
        ),
        sa.CheckConstraint(
            "risk_level IS NULL OR risk_level IN ('LOW', 'MEDIUM', 'HIGH', 'VERY_HIGH')",
            name="ck_applications_risk_level",
        ),
        sa.CheckConstraint("requested_amount > 0", name="ck_applications_requested_amount_positive"),
        sa.CheckConstraint("requested_term_months > 0", name="ck_applications_requested_term_positive"),
        sa.CheckConstraint("version >= 1", name="ck_applications_version_positive"),
    )
    op.create_index("ix_applications_tenant_id", "applications", ["tenant_id"])
    op.create_index("ix_applications_tenant_status", "applications", ["tenant_id", "status"])
    op.create_index("ix_applications_tenant_assigned_to", "applications", ["tenant_id", "assigned_to"])

    op.create_table(
        "application_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=30), nullable=True),
        sa.Column("to_status", sa.String(length=30), nullable=False),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("changed_by_type", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(with_updated=False),
        sa.CheckConstraint(
            "changed_by_type IN ('staff', 'applicant', 'system')",
            name="ck_application_status_history_actor_type",
        ),
    )
    op.create_index("ix_application_status_history_tenant_id", "application_status_history", ["tenant_id"])
    op.create_index(
        "ix_application_status_history_app_created",
        "application_status_history",
        ["application_id", "created_at"],
    )

    op.create_table(
        "data_verifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "person_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("persons.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("field_name", sa.String(length=50), nullable=False),
        sa.Column("field_value", sa.LargeBinary(), nullable=True),
        sa.Column("method", sa.String(length=30), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("person_id", "field_name", name="uq_data_verifications_person_field"),
        sa.CheckConstraint("status IN ('PENDING', 'VERIFIED')", name="ck_data_verifications_status"),
    )
    op.create_index("ix_data_verifications_tenant_id", "data_verifications", ["tenant_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_type", sa.String(length=20), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", postgresql.JSONB(), nullable=True),
        sa.Column("new_value", postgresql.JSONB(), nullable=True),
        sa.Column("changes", postgresql.JSONB(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"])
    op.create_index("ix_audit_logs_tenant_resource", "audit_logs", ["tenant_id", "resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_tenant_resource", table_name="audit_logs")
    op.drop_index("ix_audit_logs_tenant_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_data_verifications_tenant_id", table_name="data_verifications")
    op.drop_table("data_verifications")
    op.drop_index("ix_application_status_history_app_created", table_name="application_status_history")
    op.drop_index("ix_application_status_history_tenant_id", table_name="application_status_history")
    op.drop_table("application_status_history")
    op.drop_index("ix_applications_tenant_assigned_to", table_name="applications")
    op.drop_index("ix_applications_tenant_status", table_name="applications")
    op.drop_index("ix_applications_tenant_id", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_person_identifications_person_type_current", table_name="person_identifications")
    op.drop_index("ix_person_identifications_tenant_id", table_name="person_identifications")
    op.drop_table("person_identifications")
    op.drop_index("ix_applicant_accounts_person_id", table_name="applicant_accounts")
    op.drop_index("ix_applicant_accounts_tenant_id", table_name="applicant_accounts")
    op.drop_table("applicant_accounts")
    op.drop_index("ix_staff_accounts_tenant_id", table_name="staff_accounts")
    op.drop_table("staff_accounts")
    op.drop_index("ix_persons_curp", table_name="persons")
    op.drop_index("ix_persons_tenant_id", table_name="persons")
    op.drop_table("persons")
    op.drop_table("tenants")

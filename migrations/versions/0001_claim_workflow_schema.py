"""claim workflow schema

Revision ID: 0001_claim_workflow
Revises:
Create Date: 2026-01-05 09:12:40.118302

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_claim_workflow'
down_revision = None
branch_labels = None
depends_on = None


CLAIM_ACTIONS = ("CREATED", "SUBMITTED", "APPROVED", "REJECTED", "INFO_REQUESTED", "UPDATED", "DELETED")


def upgrade():
    # =========================
    # reference data
    # =========================
    op.create_table(
        "role",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.UniqueConstraint("code", name="uq_role_code"),
    )

    op.create_table(
        "service_branch",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("code", name="uq_service_branch_code"),
    )

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("email", name="uq_user_email"),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"], name="fk_user_role"),
        sa.ForeignKeyConstraint(["branch_id"], ["service_branch.id"], name="fk_user_branch"),
    )
    op.create_index("ix_user_branch_id", "user", ["branch_id"])

    # =========================
    # claim
    # =========================
    op.create_table(
        "claim",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("claim_no", sa.String(length=20), nullable=False),
        sa.Column("claim_date", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("customer_name", sa.String(length=160), nullable=False),
        sa.Column("car_model", sa.String(length=120), nullable=False),
        sa.Column("car_register", sa.String(length=30), nullable=False),
        sa.Column("vin_no", sa.String(length=40), nullable=True),
        sa.Column("project_type", sa.String(length=60), nullable=True),
        sa.Column("inventory_item_id", sa.Integer(), nullable=True),
        sa.Column("claim_detail", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_check_mileage", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("mileage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_mileage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("approval_note", sa.Text(), nullable=True),
        sa.Column("approved_date", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("create_by", sa.Integer(), nullable=False),
        sa.Column("create_date", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("update_by", sa.Integer(), nullable=True),
        sa.Column("update_date", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("claim_no", name="uq_claim_claim_no"),
        sa.CheckConstraint("amount >= 0", name="ck_claim_amount_non_negative"),
        sa.CheckConstraint("status between 0 and 4", name="ck_claim_status_range"),
        sa.ForeignKeyConstraint(["approved_by"], ["user.id"], name="fk_claim_approved_by_user"),
        sa.ForeignKeyConstraint(["branch_id"], ["service_branch.id"], name="fk_claim_branch"),
        sa.ForeignKeyConstraint(["create_by"], ["user.id"], name="fk_claim_create_by_user"),
        sa.ForeignKeyConstraint(["update_by"], ["user.id"], name="fk_claim_update_by_user"),
    )
    op.create_index("ix_claim_branch_status", "claim", ["branch_id", "status"])
    op.create_index("ix_claim_claim_date", "claim", ["claim_date"])

    # =========================
    # claim_log (append-only)
    # =========================
    op.create_table(
        "claim_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column(
            "action",
            sa.Enum(*CLAIM_ACTIONS, name="claim_action", native_enum=False, create_constraint=False),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("old_status", sa.SmallInteger(), nullable=True),
        sa.Column("new_status", sa.SmallInteger(), nullable=False),
        sa.Column("action_by", sa.Integer(), nullable=False),
        sa.Column("action_date", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["claim_id"], ["claim.id"], name="fk_claim_log_claim"),
        sa.ForeignKeyConstraint(["action_by"], ["user.id"], name="fk_claim_log_action_by_user"),
    )
    op.create_index("ix_claim_log_claim_id", "claim_log", ["claim_id"])

    # Postgres: refuse UPDATE/DELETE on claim_log at the database level too.
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(
            """
            CREATE OR REPLACE FUNCTION claim_log_reject_mutation() RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION 'claim_log is append-only';
            END;
            $$ LANGUAGE plpgsql;
            """
        )
        op.execute(
            """
            CREATE TRIGGER trg_claim_log_append_only
            BEFORE UPDATE OR DELETE ON claim_log
            FOR EACH ROW EXECUTE FUNCTION claim_log_reject_mutation();
            """
        )

    # =========================
    # claim_file
    # =========================
    op.create_table(
        "claim_file",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=120), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        sa.Column("public_url", sa.String(length=1000), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("create_by", sa.Integer(), nullable=False),
        sa.Column("create_date", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["claim_id"], ["claim.id"], name="fk_claim_file_claim"),
        sa.ForeignKeyConstraint(["create_by"], ["user.id"], name="fk_claim_file_create_by_user"),
    )
    op.create_index("ix_claim_file_claim_id", "claim_file", ["claim_id"])


def downgrade():
    op.drop_index("ix_claim_file_claim_id", table_name="claim_file")
    op.drop_table("claim_file")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS trg_claim_log_append_only ON claim_log")
        op.execute("DROP FUNCTION IF EXISTS claim_log_reject_mutation()")

    op.drop_index("ix_claim_log_claim_id", table_name="claim_log")
    op.drop_table("claim_log")

    op.drop_index("ix_claim_claim_date", table_name="claim")
    op.drop_index("ix_claim_branch_status", table_name="claim")
    op.drop_table("claim")

    op.drop_index("ix_user_branch_id", table_name="user")
    op.drop_table("user")
    op.drop_table("service_branch")
    op.drop_table("role")

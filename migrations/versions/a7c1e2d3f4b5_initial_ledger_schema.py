"""Initial ledger schema: items, disbursements, returns, assets, loans, requests, audit

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a7c1e2d3f4b5"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)


def upgrade():
    op.create_table(
        "farmers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reference_number", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("cluster", sa.String(length=128), nullable=True),
        _timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("farmers", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_farmers_cluster"), ["cluster"], unique=False)

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        _timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("classification", sa.String(length=64), nullable=True),
        sa.Column("barcode", sa.String(length=128), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        _timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("barcode"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("items", schema=None) as batch_op:
        batch_op.create_index("ix_items_name", ["name"], unique=False)
        batch_op.create_index(batch_op.f("ix_items_classification"), ["classification"], unique=False)

    op.create_table(
        "disbursements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("farmer_id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("claimed_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("batch_reference", sa.String(length=64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("quantity > 0", name="ck_disbursements_quantity_positive"),
        sa.CheckConstraint(
            "claimed_quantity >= 0 AND claimed_quantity <= quantity",
            name="ck_disbursements_claimed_within_quantity",
        ),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["farmer_id"], ["farmers.id"]),
        sa.ForeignKeyConstraint(["staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("disbursements", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_disbursements_item_id"), ["item_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_disbursements_farmer_id"), ["farmer_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_disbursements_staff_id"), ["staff_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_disbursements_batch_reference"), ["batch_reference"], unique=False)
        batch_op.create_index("ix_disbursements_item_occurred", ["item_id", "occurred_at"], unique=False)
        batch_op.create_index("ix_disbursements_farmer_occurred", ["farmer_id", "occurred_at"], unique=False)

    op.create_table(
        "item_returns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("disbursement_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("farmer_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("cluster", sa.String(length=128), nullable=True),
        _timestamps(),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_staff_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("quantity > 0", name="ck_item_returns_quantity_positive"),
        sa.ForeignKeyConstraint(["disbursement_id"], ["disbursements.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["farmer_id"], ["farmers.id"]),
        sa.ForeignKeyConstraint(["reviewed_by_staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("item_returns", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_item_returns_disbursement_id"), ["disbursement_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_returns_item_id"), ["item_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_returns_farmer_id"), ["farmer_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_returns_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_returns_cluster"), ["cluster"], unique=False)
        batch_op.create_index("ix_item_returns_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reference_number", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("condition", sa.String(length=32), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        _timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("assets", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_assets_is_available"), ["is_available"], unique=False)

    op.create_table(
        "asset_loans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_id", sa.Integer(), nullable=False),
        sa.Column("farmer_id", sa.Integer(), nullable=False),
        sa.Column("date_borrowed", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_return", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_return", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["farmer_id"], ["farmers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("asset_loans", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_asset_loans_asset_id"), ["asset_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_asset_loans_farmer_id"), ["farmer_id"], unique=False)
        batch_op.create_index("ix_asset_loans_asset_open", ["asset_id", "actual_return"], unique=False)

    op.create_table(
        "item_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        _timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by_staff_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["requester_id"], ["staff.id"]),
        sa.ForeignKeyConstraint(["decided_by_staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("item_requests", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_item_requests_requester_id"), ["requester_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_requests_status"), ["status"], unique=False)
        batch_op.create_index("ix_item_requests_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "item_request_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_item_request_lines_quantity_positive"),
        sa.ForeignKeyConstraint(["request_id"], ["item_requests.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("item_request_lines", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_item_request_lines_request_id"), ["request_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_item_request_lines_item_id"), ["item_id"], unique=False)

    op.create_table(
        "ledger_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=True),
        sa.Column("new_value", sa.String(length=64), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        _timestamps(),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("ledger_events", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_ledger_events_event_type"), ["event_type"], unique=False)
        batch_op.create_index(batch_op.f("ix_ledger_events_occurred_at"), ["occurred_at"], unique=False)
        batch_op.create_index("ix_ledger_events_entity", ["entity_type", "entity_id", "occurred_at"], unique=False)


def downgrade():
    for table_name in [
        "ledger_events",
        "item_request_lines",
        "item_requests",
        "asset_loans",
        "assets",
        "item_returns",
        "disbursements",
        "items",
        "staff",
        "farmers",
    ]:
        op.drop_table(table_name)

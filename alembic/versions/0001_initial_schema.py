"""Create integrations, event_claims and delivery_logs tables."""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from eventrelay.models.types import GUID, JSONType

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INTEGRATION_STATUS_ENUM = sa.Enum(
    "disabled",
    "connected",
    "error",
    name="integration_status",
    native_enum=False,
)


def upgrade() -> None:
    op.create_table(
        "integrations",
        sa.Column("id", GUID(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("status", INTEGRATION_STATUS_ENUM, nullable=False, server_default="disabled"),
        sa.Column("credential", sa.String(length=512), nullable=True),
        sa.Column("last_event_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=1024), nullable=True),
        sa.Column("last_error_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "event_claims",
        sa.Column("id", GUID(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("event_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "event_id", name="uq_event_claims_tenant_event"),
    )

    op.create_table(
        "delivery_logs",
        sa.Column("id", GUID(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("direction", sa.String(length=16), nullable=False, server_default="outbound"),
        sa.Column("kind", sa.String(length=32), nullable=False, server_default="event"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("request", JSONType(), nullable=False),
        sa.Column("response", JSONType(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_delivery_logs_tenant_created", "delivery_logs", ["tenant_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_delivery_logs_tenant_created", table_name="delivery_logs")
    op.drop_table("delivery_logs")
    op.drop_table("event_claims")
    op.drop_table("integrations")

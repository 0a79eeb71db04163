"""Initial models.

Revision ID: 001_initial_models
Revises:
Create Date: 2025-01-15

Creates tables:
- leads (read model of the lead service, plus the written-back score)
- scoring_configurations (active scoring configuration per scope)
- queue_configurations (per-tenant queue tunables)
- queue_sequences (per-tenant queue position counter)
- queue_entries (the lead work queue)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001_initial_models"
down_revision = None
branch_labels = None
depends_on = None

# Define enum types with create_type=False since we create them explicitly
leadstatus = postgresql.ENUM(
    'NEW', 'CONTACTED', 'QUALIFIED', 'INTERESTED', 'NEGOTIATING', 'CLOSED_WON',
    'CLOSED_LOST', 'INACTIVE', 'FOLLOW_UP', 'APPOINTMENT_SCHEDULED',
    'PROPERTY_VIEWED', 'OFFER_MADE', 'UNDER_CONTRACT',
    name='leadstatus',
    create_type=False
)
leadsource = postgresql.ENUM(
    'WEBSITE', 'REFERRAL', 'SOCIAL_MEDIA', 'COLD_CALL', 'EMAIL_CAMPAIGN',
    'SMS_CAMPAIGN', 'OPEN_HOUSE', 'FOR_SALE_SIGN', 'ONLINE_AD', 'PRINT_AD',
    'RADIO_AD', 'TV_AD', 'EVENT', 'PARTNER', 'OTHER',
    name='leadsource',
    create_type=False
)
queuepriority = postgresql.ENUM(
    'URGENT', 'HIGH', 'NORMAL', 'LOW',
    name='queuepriority',
    create_type=False
)
queueentrystatus = postgresql.ENUM(
    'PENDING', 'CLAIMED', 'ASSIGNED', 'PROCESSING', 'COMPLETED', 'CANCELLED', 'EXPIRED',
    name='queueentrystatus',
    create_type=False
)
staleentryaction = postgresql.ENUM(
    'REQUEUE', 'EXPIRE',
    name='staleentryaction',
    create_type=False
)


def upgrade() -> None:
    # Create enum types explicitly first
    leadstatus.create(op.get_bind(), checkfirst=True)
    leadsource.create(op.get_bind(), checkfirst=True)
    queuepriority.create(op.get_bind(), checkfirst=True)
    queueentrystatus.create(op.get_bind(), checkfirst=True)
    staleentryaction.create(op.get_bind(), checkfirst=True)

    # Create leads table
    op.create_table(
        "leads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lead_id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("status", leadstatus, nullable=False, server_default="NEW"),
        sa.Column("source", leadsource, nullable=True),
        sa.Column("property_preferences", sa.JSON(), nullable=True),
        sa.Column("financial_info", sa.JSON(), nullable=True),
        sa.Column("communication_history", sa.JSON(), nullable=True),
        sa.Column("properties_viewed", sa.JSON(), nullable=True),
        sa.Column("offers", sa.JSON(), nullable=True),
        sa.Column("expected_close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leads_lead_id", "leads", ["lead_id"], unique=True)
    op.create_index("ix_leads_tenant_id", "leads", ["tenant_id"])
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_score", "leads", ["score"])

    # Create scoring_configurations table
    op.create_table(
        "scoring_configurations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scope", sa.String(64), nullable=False),
        sa.Column("factors", sa.JSON(), nullable=False),
        sa.Column("algorithm", sa.String(20), nullable=False, server_default="weighted"),
        sa.Column("update_frequency", sa.String(20), nullable=False, server_default="realtime"),
        sa.Column("min_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("max_score", sa.Float(), nullable=False, server_default="100"),
        sa.Column("thresholds", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scoring_configurations_scope", "scoring_configurations", ["scope"], unique=True)

    # Create queue_configurations table
    op.create_table(
        "queue_configurations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("max_queue_size", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("max_wait_time_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("assignment_timeout_minutes", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("queue_entry_expiration_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("purge_expired_entries", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("max_leads_per_agent", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_workload_percentage", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("urgent_priority_weight", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("high_priority_weight", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("normal_priority_weight", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("low_priority_weight", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("enable_auto_scaling", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("scaling_threshold", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("scaling_cooldown_minutes", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("enable_alerts", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("alert_threshold", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("alert_cooldown_minutes", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("enable_stale_watchdog", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("stale_entry_action", staleentryaction, nullable=False, server_default="REQUEUE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_queue_configurations_tenant_id", "queue_configurations", ["tenant_id"], unique=True)

    # Create queue_sequences table
    op.create_table(
        "queue_sequences",
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("last_position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("tenant_id"),
    )

    # Create queue_entries table
    op.create_table(
        "queue_entries",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("lead_id", sa.String(36), nullable=False),
        sa.Column("priority", queuepriority, nullable=False, server_default="NORMAL"),
        sa.Column("priority_rank", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("status", queueentrystatus, nullable=False, server_default="PENDING"),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("wait_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_processing_time", sa.Integer(), nullable=True),
        sa.Column("actual_processing_time", sa.Integer(), nullable=True),
        sa.Column("assignment_reason", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("claimed_by", sa.String(64), nullable=True),
        sa.Column("assigned_to", sa.String(64), nullable=True),
        sa.Column("assigned_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "queue_position", name="uq_queue_entries_tenant_position"),
    )
    op.create_index(
        "ix_queue_entries_claim",
        "queue_entries",
        ["tenant_id", "status", "priority_rank", "created_at", "queue_position"],
    )
    op.create_index("ix_queue_entries_tenant_lead", "queue_entries", ["tenant_id", "lead_id"])
    op.create_index("ix_queue_entries_tenant_agent", "queue_entries", ["tenant_id", "assigned_to", "status"])


def downgrade() -> None:
    op.drop_table("queue_entries")
    op.drop_table("queue_sequences")
    op.drop_table("queue_configurations")
    op.drop_table("scoring_configurations")
    op.drop_table("leads")

    # Drop enum types
    staleentryaction.drop(op.get_bind(), checkfirst=True)
    queueentrystatus.drop(op.get_bind(), checkfirst=True)
    queuepriority.drop(op.get_bind(), checkfirst=True)
    leadsource.drop(op.get_bind(), checkfirst=True)
    leadstatus.drop(op.get_bind(), checkfirst=True)

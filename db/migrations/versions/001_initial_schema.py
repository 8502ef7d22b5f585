"""Initial schema: scoring and caller-ID tables.

Revision ID: 001
Revises:
Create Date: 2026-10-12

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _in(column, values, nullable=False):
    clause = f"{column} IN (" + ",".join(f"'{v}'" for v in values) + ")"
    return f"{column} IS NULL OR {clause}" if nullable else clause


def upgrade() -> None:
    # ─── Scoring ─────────────────────────────────────────────────────────────

    op.create_table(
        "scoring_models",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("version", sa.Text, nullable=False, server_default="1.0.0"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("organization_id", sa.Text, nullable=True),
        sa.Column("feature_weights", sa.JSON, nullable=False),
        sa.Column("disposition_scores", sa.JSON, nullable=False),
        sa.Column("time_slot_multipliers", sa.JSON, nullable=False),
        sa.Column("day_of_week_multipliers", sa.JSON, nullable=False),
        sa.Column("high_priority_threshold", sa.Integer, nullable=False, server_default="70"),
        sa.Column("low_priority_threshold", sa.Integer, nullable=False, server_default="30"),
        sa.Column("max_dial_attempts", sa.Integer, nullable=False, server_default="5"),
        sa.Column("accuracy", sa.Float, nullable=True),
        sa.Column("precision", sa.Float, nullable=True),
        sa.Column("recall", sa.Float, nullable=True),
        sa.Column("leads_scored", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("trained_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_scoring_models_organization_id", "scoring_models", ["organization_id"])
    # At most one active model per scope ('' is the default scope)
    op.create_index(
        "uq_scoring_models_active_scope",
        "scoring_models",
        [sa.text("coalesce(organization_id, '')")],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )

    op.create_table(
        "lead_scores",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("lead_id", sa.Text, nullable=False),
        sa.Column("campaign_id", sa.Text, nullable=True),
        sa.Column("organization_id", sa.Text, nullable=True),
        sa.Column("overall_score", sa.Integer, nullable=False, server_default="50"),
        sa.Column("contact_probability", sa.Float, nullable=False, server_default="0.5"),
        sa.Column("conversion_probability", sa.Float, nullable=True),
        sa.Column("priority", sa.Text, nullable=True),
        sa.Column("best_time_slots", sa.JSON, nullable=True),
        sa.Column("preferred_timezone", sa.Text, nullable=True),
        sa.Column("features", sa.JSON, nullable=True),
        sa.Column("model_version", sa.Text, nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("overall_score BETWEEN 0 AND 100", name="ck_lead_score_overall_range"),
        sa.CheckConstraint(
            _in("priority", ("high", "normal", "low"), nullable=True),
            name="ck_lead_score_priority",
        ),
        sa.UniqueConstraint("lead_id", name="uq_lead_scores_lead_id"),
    )
    op.create_index("ix_lead_scores_campaign_score", "lead_scores", ["campaign_id", "overall_score"])
    op.create_index("ix_lead_scores_scored_at", "lead_scores", ["scored_at"])

    # ─── Caller ID ───────────────────────────────────────────────────────────

    op.create_table(
        "caller_id_pools",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("local_presence_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("rotation_strategy", sa.Text, nullable=False, server_default="round_robin"),
        sa.Column("max_calls_per_number", sa.Integer, nullable=False, server_default="50"),
        sa.Column("cooldown_minutes", sa.Integer, nullable=False, server_default="60"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            _in("rotation_strategy", ("round_robin", "random", "weighted", "least_recently_used")),
            name="ck_caller_id_pool_rotation_strategy",
        ),
        sa.UniqueConstraint("name", name="uq_caller_id_pools_name"),
    )

    op.create_table(
        "caller_id_numbers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("phone_number", sa.Text, nullable=False),
        sa.Column("area_code", sa.String(3), nullable=False),
        sa.Column("state", sa.Text, nullable=True),
        sa.Column("city", sa.Text, nullable=True),
        sa.Column("pool_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("reputation_level", sa.Text, nullable=False, server_default="excellent"),
        sa.Column("reputation_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("calls_today", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("answered_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("flagged_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cooldown_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_flagged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("version_id", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            _in("status", ("active", "cooling_down", "flagged", "blocked", "inactive")),
            name="ck_caller_id_number_status",
        ),
        sa.CheckConstraint(
            _in("reputation_level", ("excellent", "good", "fair", "poor", "critical")),
            name="ck_caller_id_number_reputation_level",
        ),
        sa.CheckConstraint(
            "reputation_score BETWEEN 0 AND 100", name="ck_caller_id_number_reputation_range"
        ),
        sa.UniqueConstraint("pool_id", "phone_number", name="uq_caller_id_number_pool_phone"),
        sa.ForeignKeyConstraint(
            ["pool_id"], ["caller_id_pools.id"], name="fk_caller_id_number_pool", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_caller_id_numbers_pool_id", "caller_id_numbers", ["pool_id"])
    op.create_index("ix_caller_id_numbers_area_code", "caller_id_numbers", ["area_code"])

    op.create_table(
        "caller_id_usage_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("caller_id_number_id", sa.Uuid(), nullable=True),
        sa.Column("caller_id_phone_number", sa.Text, nullable=False),
        sa.Column("campaign_id", sa.Text, nullable=True),
        sa.Column("lead_id", sa.Text, nullable=True),
        sa.Column("destination_number", sa.Text, nullable=False),
        sa.Column("destination_area_code", sa.String(3), nullable=True),
        sa.Column("was_answered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("call_duration", sa.Integer, nullable=True),
        sa.Column("call_result", sa.Text, nullable=True),
        sa.Column("call_uuid", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            _in("call_result", ("answered", "no_answer", "busy", "failed", "voicemail"), nullable=True),
            name="ck_caller_id_usage_call_result",
        ),
        sa.ForeignKeyConstraint(
            ["caller_id_number_id"],
            ["caller_id_numbers.id"],
            name="fk_caller_id_usage_number",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_caller_id_usage_logs_caller_id_number_id", "caller_id_usage_logs", ["caller_id_number_id"])
    op.create_index("ix_caller_id_usage_logs_campaign_id", "caller_id_usage_logs", ["campaign_id"])
    op.create_index("ix_caller_id_usage_logs_lead_id", "caller_id_usage_logs", ["lead_id"])

    op.create_table(
        "caller_id_reputation_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("caller_id_number_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.Text, nullable=False),
        sa.Column("score_change", sa.Integer, nullable=False),
        sa.Column("previous_score", sa.Integer, nullable=False),
        sa.Column("new_score", sa.Integer, nullable=False),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            _in(
                "event_type",
                (
                    "spam_report", "carrier_block", "low_answer_rate", "manual_flag",
                    "recovery", "verification_passed", "verification_failed",
                    "call_answered", "daily_reset", "cooldown",
                ),
            ),
            name="ck_caller_id_reputation_event_type",
        ),
        sa.ForeignKeyConstraint(
            ["caller_id_number_id"],
            ["caller_id_numbers.id"],
            name="fk_caller_id_reputation_number",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_caller_id_reputation_events_caller_id_number_id",
        "caller_id_reputation_events",
        ["caller_id_number_id"],
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("caller_id_reputation_events")
    op.drop_table("caller_id_usage_logs")
    op.drop_table("caller_id_numbers")
    op.drop_table("caller_id_pools")
    op.drop_table("lead_scores")
    op.drop_index("uq_scoring_models_active_scope", table_name="scoring_models")
    op.drop_table("scoring_models")

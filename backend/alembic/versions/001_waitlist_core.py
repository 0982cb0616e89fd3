"""Facilities catalog, waitlist snapshots, TO alerts, prebuilt blocks, data blocks, score cache."""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "facilities",
        sa.Column("facility_id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("capacity_total", sa.Integer(), nullable=True),
        sa.Column("capacity_by_class_json", sa.Text(), nullable=True),
        sa.Column("current_enrolled", sa.Integer(), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        "waitlist_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("facility_id", sa.String(128), nullable=False),
        sa.Column("snapshot_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_enrolled", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("waitlist_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("waitlist_by_class_json", sa.Text(), nullable=True),
        sa.Column("enrolled_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("to_state", sa.String(16), nullable=False, server_default="unchanged"),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.7"),
    )
    op.create_index("ix_waitlist_snapshots_facility_id", "waitlist_snapshots", ["facility_id"])
    op.create_index("ix_waitlist_snapshots_to_state", "waitlist_snapshots", ["to_state"])
    op.create_index(
        "ix_waitlist_snapshots_facility_snapshot_at", "waitlist_snapshots", ["facility_id", "snapshot_at"]
    )

    op.create_table(
        "to_alerts",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("facility_id", sa.String(128), nullable=False),
        sa.Column("facility_name", sa.String(256), nullable=True),
        sa.Column("age_class", sa.String(16), nullable=False, server_default="all"),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_slots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("prev_enrolled", sa.Integer(), nullable=True),
        sa.Column("curr_enrolled", sa.Integer(), nullable=True),
    )
    op.create_index("ix_to_alerts_facility_id", "to_alerts", ["facility_id"])
    op.create_index("ix_to_alerts_facility_detected_at", "to_alerts", ["facility_id", "detected_at"])

    op.create_table(
        "admission_blocks",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("facility_id", sa.String(128), nullable=False),
        sa.Column("block_type", sa.String(64), nullable=False),
        sa.Column("data_json", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_admission_blocks_facility_id", "admission_blocks", ["facility_id"])

    op.create_table(
        "data_blocks",
        sa.Column("block_id", sa.String(192), primary_key=True),
        sa.Column("block_type", sa.String(64), nullable=False),
        sa.Column("facility_id", sa.String(128), nullable=False),
        sa.Column("features_json", sa.Text(), nullable=True),
        sa.Column("label_json", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("source_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_data_blocks_block_type", "data_blocks", ["block_type"])
    op.create_index("ix_data_blocks_facility_id", "data_blocks", ["facility_id"])

    op.create_table(
        "admission_score_cache",
        sa.Column("cache_key", sa.String(256), primary_key=True),
        sa.Column("facility_id", sa.String(128), nullable=False),
        sa.Column("child_age_band", sa.String(2), nullable=False),
        sa.Column("priority_type", sa.String(32), nullable=True),
        sa.Column("waiting_position", sa.Integer(), nullable=False),
        sa.Column("waiting_position_original", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("w_eff", sa.Integer(), nullable=False),
        sa.Column("region_key", sa.String(32), nullable=False),
        sa.Column("engine_version", sa.String(16), nullable=False),
        sa.Column("calibration_version", sa.String(16), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_admission_score_cache_facility_id", "admission_score_cache", ["facility_id"])
    op.create_index("ix_admission_score_cache_expires_at", "admission_score_cache", ["expires_at"])


def downgrade() -> None:
    op.drop_table("admission_score_cache")
    op.drop_table("data_blocks")
    op.drop_table("admission_blocks")
    op.drop_table("to_alerts")
    op.drop_table("waitlist_snapshots")
    op.drop_table("facilities")

"""initial scrutiny schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _big() -> sa.types.TypeEngine:
    return sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "scrutiny_runs",
        sa.Column("id", _big(), autoincrement=True, nullable=False),
        sa.Column("game", sa.String(length=20), nullable=False),
        sa.Column("draw_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("registros", sa.Integer(), nullable=False),
        sa.Column("anulados", sa.Integer(), nullable=False),
        sa.Column("apuestas", sa.Integer(), nullable=False),
        sa.Column("recaudacion", _big(), nullable=False),
        sa.Column("total_premios", _big(), nullable=False),
        sa.Column("extracto", sa.JSON(), nullable=True),
        sa.Column("decode_summary", sa.JSON(), nullable=True),
        sa.Column("reconciliation", sa.JSON(), nullable=True),
        sa.Column("mismatch_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_scrutiny_runs")),
        sa.UniqueConstraint("game", "draw_number", name="uq_scrutiny_runs_game_draw"),
    )

    op.create_table(
        "tier_results",
        sa.Column("id", _big(), autoincrement=True, nullable=False),
        sa.Column("run_id", _big(), nullable=False),
        sa.Column("modality", sa.String(length=50), nullable=False),
        sa.Column("tier", sa.String(length=50), nullable=False),
        sa.Column("hit_level", sa.String(length=30), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("raw_winner_count", sa.Integer(), nullable=False),
        sa.Column("pool_amount", _big(), nullable=False),
        sa.Column("unit_prize", _big(), nullable=False),
        sa.Column("vacant_amount", _big(), nullable=False),
        sa.Column("carry_over_in", _big(), nullable=False),
        sa.Column("guarantee_shortfall", _big(), nullable=False),
        sa.Column("paid_amount", _big(), nullable=False),
        sa.ForeignKeyConstraint(
            ["run_id"],
            ["scrutiny_runs.id"],
            name=op.f("fk_tier_results_run_id_scrutiny_runs"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tier_results")),
        sa.UniqueConstraint(
            "run_id", "modality", "tier", name="uq_tier_results_run_modality_tier"
        ),
    )
    op.create_index(op.f("ix_tier_results_run_id"), "tier_results", ["run_id"], unique=False)

    op.create_table(
        "agency_prizes",
        sa.Column("id", _big(), autoincrement=True, nullable=False),
        sa.Column("run_id", _big(), nullable=False),
        sa.Column("jurisdiction_code", sa.String(length=2), nullable=False),
        sa.Column("selling_point_code", sa.String(length=5), nullable=True),
        sa.Column("record_count", sa.Integer(), nullable=False),
        sa.Column("ticket_count", sa.Integer(), nullable=False),
        sa.Column("bet_count", sa.Integer(), nullable=False),
        sa.Column("cancelled_count", sa.Integer(), nullable=False),
        sa.Column("stake_total", _big(), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("prize_total", _big(), nullable=False),
        sa.Column("commission_total", _big(), nullable=False),
        sa.ForeignKeyConstraint(
            ["run_id"],
            ["scrutiny_runs.id"],
            name=op.f("fk_agency_prizes_run_id_scrutiny_runs"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_agency_prizes")),
    )
    op.create_index(op.f("ix_agency_prizes_run_id"), "agency_prizes", ["run_id"], unique=False)
    op.create_index(
        "ix_agency_prizes_agency",
        "agency_prizes",
        ["jurisdiction_code", "selling_point_code"],
        unique=False,
    )

    op.create_table(
        "carry_overs",
        sa.Column("id", _big(), autoincrement=True, nullable=False),
        sa.Column("game", sa.String(length=20), nullable=False),
        sa.Column("modality", sa.String(length=50), nullable=False),
        sa.Column("draw_number", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(length=50), nullable=False),
        sa.Column("amount", _big(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_carry_overs")),
        sa.UniqueConstraint(
            "game",
            "modality",
            "draw_number",
            "tier",
            name="uq_carry_overs_game_modality_draw_tier",
        ),
    )


def downgrade() -> None:
    op.drop_table("carry_overs")
    op.drop_index("ix_agency_prizes_agency", table_name="agency_prizes")
    op.drop_index(op.f("ix_agency_prizes_run_id"), table_name="agency_prizes")
    op.drop_table("agency_prizes")
    op.drop_index(op.f("ix_tier_results_run_id"), table_name="tier_results")
    op.drop_table("tier_results")
    op.drop_table("scrutiny_runs")

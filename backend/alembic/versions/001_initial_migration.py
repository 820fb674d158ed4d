"""Initial migration: create tournament, team, teamregistration, match and standing tables

Revision ID: 001_initial
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("format", sa.String(), nullable=False),
        sa.Column("min_teams", sa.Integer(), nullable=False),
        sa.Column("max_teams", sa.Integer(), nullable=False),
        sa.Column("level_of_competition", sa.String(), nullable=False),
        sa.Column("gender", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("points_per_win", sa.Integer(), nullable=False),
        sa.Column("points_per_draw", sa.Integer(), nullable=False),
        sa.Column("points_per_loss", sa.Integer(), nullable=False),
        sa.Column("match_duration", sa.Integer(), nullable=False),
        sa.Column("break_duration", sa.Integer(), nullable=False),
        sa.Column("registered_teams", sa.JSON(), nullable=False),
        sa.Column("groups", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "year", name="uq_tournament_name_year"),
    )
    op.create_index("ix_tournament_name", "tournament", ["name"])
    op.create_index("ix_tournament_status", "tournament", ["status"])

    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("grade", sa.String(), nullable=True),
        sa.Column("gender", sa.String(), nullable=False),
        sa.Column("level_of_competition", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_team_name", "team", ["name"])

    op.create_table(
        "teamregistration",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("tournament_name", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("registration_date", sa.DateTime(), nullable=False),
        sa.Column("level_of_competition", sa.String(), nullable=True),
        sa.Column("payment_status", sa.String(), nullable=False),
        sa.Column("payment_complete", sa.Boolean(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
    )
    op.create_index("ix_teamregistration_team_id", "teamregistration", ["team_id"])

    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("team1_id", sa.Integer(), nullable=True),
        sa.Column("team2_id", sa.Integer(), nullable=True),
        sa.Column("team1_score", sa.Integer(), nullable=True),
        sa.Column("team2_score", sa.Integer(), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("loser_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("bracket_type", sa.String(), nullable=False),
        sa.Column("bracket_location", sa.String(), nullable=False),
        sa.Column("group", sa.String(), nullable=True),
        sa.Column("is_consolation", sa.Boolean(), nullable=False),
        sa.Column("next_match_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(), nullable=True),
        sa.Column("court", sa.String(), nullable=True),
        sa.Column("referee", sa.String(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("actual_start_time", sa.DateTime(), nullable=True),
        sa.Column("actual_end_time", sa.DateTime(), nullable=True),
        sa.Column("is_rescheduled", sa.Boolean(), nullable=False),
        sa.Column("walkover_reason", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["team1_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["team2_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["loser_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["next_match_id"], ["match.id"]),
    )
    op.create_index("ix_match_tournament_id", "match", ["tournament_id"])
    op.create_index("ix_match_scheduled_time", "match", ["scheduled_time"])
    op.create_index("ix_match_tournament_round", "match", ["tournament_id", "round", "match_number"])
    op.create_index("ix_match_tournament_schedule", "match", ["tournament_id", "status", "scheduled_time"])

    op.create_table(
        "standing",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("group", sa.String(), nullable=True),
        sa.Column("played", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("draws", sa.Integer(), nullable=False),
        sa.Column("points_for", sa.Integer(), nullable=False),
        sa.Column("points_against", sa.Integer(), nullable=False),
        sa.Column("points_difference", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.UniqueConstraint("tournament_id", "team_id", "group", name="uq_standing_team_group"),
    )
    op.create_index("ix_standing_tournament_id", "standing", ["tournament_id"])
    op.create_index("ix_standing_group", "standing", ["group"])


def downgrade() -> None:
    op.drop_index("ix_standing_group", table_name="standing")
    op.drop_index("ix_standing_tournament_id", table_name="standing")
    op.drop_table("standing")
    op.drop_index("ix_match_tournament_schedule", table_name="match")
    op.drop_index("ix_match_tournament_round", table_name="match")
    op.drop_index("ix_match_scheduled_time", table_name="match")
    op.drop_index("ix_match_tournament_id", table_name="match")
    op.drop_table("match")
    op.drop_index("ix_teamregistration_team_id", table_name="teamregistration")
    op.drop_table("teamregistration")
    op.drop_index("ix_team_name", table_name="team")
    op.drop_table("team")
    op.drop_index("ix_tournament_status", table_name="tournament")
    op.drop_index("ix_tournament_name", table_name="tournament")
    op.drop_table("tournament")

"""Initial schema: competitions, players, identity links, merge audit, appearances, ratings

Revision ID: 5e1a7c2d9b40
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "5e1a7c2d9b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

POSITION_GROUP_CHECK = "position_group IN ('GK', 'DEF', 'MID', 'ATT')"


def upgrade() -> None:
    jsonb = postgresql.JSONB(astext_type=sa.Text())

    op.create_table(
        "competitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("country", sa.String(length=100), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("provider_league_id", sa.String(length=50), nullable=False),
        sa.Column("season", sa.String(length=20), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_league_id", "season", name="uq_competition_provider_season"),
    )
    op.create_index("idx_competitions_country", "competitions", ["country"], unique=False)
    op.create_index("idx_competitions_tier", "competitions", ["tier"], unique=False)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("provider_team_id", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_team_id", "competition_id", name="uq_team_provider_competition"),
    )
    op.create_index("idx_teams_competition", "teams", ["competition_id"], unique=False)

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("name_normalized", sa.String(length=255), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("nationality", sa.String(length=100), nullable=True),
        sa.Column("height_cm", sa.Integer(), nullable=True),
        sa.Column("weight_kg", sa.Integer(), nullable=True),
        sa.Column("preferred_foot", sa.String(length=10), nullable=True),
        sa.Column("photo_url", sa.String(length=500), nullable=True),
        sa.Column("position", sa.String(length=50), nullable=True),
        sa.Column("position_group", sa.String(length=3), nullable=False, server_default="MID"),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("competition_id", sa.Integer(), nullable=True),
        sa.Column("field_sources", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(POSITION_GROUP_CHECK, name="ck_players_position_group"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_players_name_normalized", "players", ["name_normalized"], unique=False)
    op.create_index("idx_players_team", "players", ["team_id"], unique=False)
    op.create_index("idx_players_competition", "players", ["competition_id"], unique=False)
    op.create_index("idx_players_position_group", "players", ["position_group"], unique=False)

    op.create_table(
        "player_external_ids",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("provider_player_id", sa.String(length=50), nullable=False),
        sa.Column("provider_team_id", sa.String(length=50), nullable=True),
        sa.Column("provider_competition_id", sa.String(length=50), nullable=True),
        sa.Column("confidence", sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_player_id", name="uq_external_id_provider_player"),
        sa.UniqueConstraint("player_id", "provider", name="uq_external_id_player_provider"),
    )

    op.create_table(
        "unresolved_external_players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("provider_player_id", sa.String(length=50), nullable=False),
        sa.Column("scraped_name", sa.String(length=255), nullable=False),
        sa.Column("payload", jsonb, nullable=True),
        sa.Column("candidate_player_ids", jsonb, nullable=True),
        sa.Column("top_confidence", sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=True),
        sa.Column("resolved_player_id", sa.Integer(), nullable=True),
        sa.Column("resolved_by", sa.String(length=100), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["resolved_player_id"], ["players.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_player_id", name="uq_unresolved_provider_player"),
    )
    op.create_index(
        "idx_unresolved_status", "unresolved_external_players", ["status", "created_at"], unique=False
    )

    op.create_table(
        "provider_player_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("profile", jsonb, nullable=True),
        sa.Column("normalized", jsonb, nullable=False),
        sa.Column("fetched_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "provider", name="uq_provider_profile_player"),
    )

    op.create_table(
        "provider_player_aggregates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("window", sa.String(length=20), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=True),
        sa.Column("season", sa.String(length=20), nullable=True),
        sa.Column("from_date", sa.Date(), nullable=True),
        sa.Column("to_date", sa.Date(), nullable=True),
        sa.Column("minutes", sa.Integer(), nullable=True),
        sa.Column("appearances", sa.Integer(), nullable=True),
        sa.Column("totals", jsonb, nullable=True),
        sa.Column("per90", jsonb, nullable=True),
        sa.Column("additional_stats", jsonb, nullable=True),
        sa.Column("fetched_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "provider", "window", name="uq_provider_aggregate_window"),
    )

    op.create_table(
        "player_field_conflicts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("field", sa.String(length=50), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("canonical_value", jsonb, nullable=True),
        sa.Column("provider_value", jsonb, nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resolved_value", jsonb, nullable=True),
        sa.Column("resolved_by", sa.String(length=100), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("fetched_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "field", "provider", name="uq_conflict_player_field_provider"),
    )
    op.create_index(
        "idx_conflicts_player_resolved", "player_field_conflicts", ["player_id", "resolved"], unique=False
    )

    op.create_table(
        "appearances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("provider_fixture_id", sa.String(length=50), nullable=False),
        sa.Column("match_date", sa.Date(), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False),
        sa.Column("stats", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("minutes > 0", name="ck_appearances_minutes_positive"),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "provider", "provider_fixture_id", "player_id", name="uq_appearance_provider_fixture_player"
        ),
    )
    op.create_index("idx_appearances_player_date", "appearances", ["player_id", "match_date"], unique=False)
    op.create_index(
        "idx_appearances_competition_date", "appearances", ["competition_id", "match_date"], unique=False
    )

    op.create_table(
        "player_rolling_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("from_date", sa.Date(), nullable=False),
        sa.Column("to_date", sa.Date(), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False),
        sa.Column("totals", jsonb, nullable=False),
        sa.Column("per90", jsonb, nullable=False),
        sa.Column("rates", jsonb, nullable=False),
        sa.Column("features", jsonb, nullable=False),
        sa.Column("last5", jsonb, nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "competition_id", name="uq_rolling_stats_player_competition"),
    )

    op.create_table(
        "rating_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("position_group", sa.String(length=3), nullable=False),
        sa.Column("weights", jsonb, nullable=False),
        sa.Column("invert_metrics", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(POSITION_GROUP_CHECK, name="ck_rating_profiles_position_group"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("position_group"),
    )

    op.create_table(
        "player_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("position_group", sa.String(length=3), nullable=False),
        sa.Column("rating365", sa.Integer(), nullable=False),
        sa.Column("rating_last5", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("level_score", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("rating365 BETWEEN 0 AND 100", name="ck_player_ratings_rating365"),
        sa.CheckConstraint("level_score BETWEEN 0 AND 100", name="ck_player_ratings_level_score"),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "competition_id", name="uq_player_rating_player_competition"),
    )
    op.create_index(
        "idx_player_ratings_competition_rating", "player_ratings", ["competition_id", "rating365"], unique=False
    )
    op.create_index(
        "idx_player_ratings_group_rating", "player_ratings", ["position_group", "rating365"], unique=False
    )

    op.create_table(
        "competition_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("strength_score", sa.Integer(), nullable=False),
        sa.Column("player_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competition_id"),
    )
    op.create_index("idx_competition_ratings_strength", "competition_ratings", ["strength_score"], unique=False)

    op.create_table(
        "update_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("update_type", sa.String(length=50), nullable=False),
        sa.Column("details", jsonb, nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_update_log_type_date", "update_log", ["update_type", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_update_log_type_date", table_name="update_log")
    op.drop_table("update_log")
    op.drop_index("idx_competition_ratings_strength", table_name="competition_ratings")
    op.drop_table("competition_ratings")
    op.drop_index("idx_player_ratings_group_rating", table_name="player_ratings")
    op.drop_index("idx_player_ratings_competition_rating", table_name="player_ratings")
    op.drop_table("player_ratings")
    op.drop_table("rating_profiles")
    op.drop_table("player_rolling_stats")
    op.drop_index("idx_appearances_competition_date", table_name="appearances")
    op.drop_index("idx_appearances_player_date", table_name="appearances")
    op.drop_table("appearances")
    op.drop_index("idx_conflicts_player_resolved", table_name="player_field_conflicts")
    op.drop_table("player_field_conflicts")
    op.drop_table("provider_player_aggregates")
    op.drop_table("provider_player_profiles")
    op.drop_index("idx_unresolved_status", table_name="unresolved_external_players")
    op.drop_table("unresolved_external_players")
    op.drop_table("player_external_ids")
    op.drop_index("idx_players_position_group", table_name="players")
    op.drop_index("idx_players_competition", table_name="players")
    op.drop_index("idx_players_team", table_name="players")
    op.drop_index("idx_players_name_normalized", table_name="players")
    op.drop_table("players")
    op.drop_index("idx_teams_competition", table_name="teams")
    op.drop_table("teams")
    op.drop_index("idx_competitions_tier", table_name="competitions")
    op.drop_index("idx_competitions_country", table_name="competitions")
    op.drop_table("competitions")

"""
scoutrank - football player identity and rating engine

Links player records from several data providers (API-Football, FotMob,
SofaScore) to one canonical player, merges their profiles with field
precedence and conflict tracking, and turns per-match statistics into
position-normalized, competition-adjusted ratings.

Main components:
- players: Name normalization, identity resolution, canonical merging
- providers: Provider payload types and adapters to the normalized profile
- services: Appearance ingestion
- ratings: Stat aggregation, percentile scoring, rating pipeline
- db: SQLAlchemy models and session management
"""

__version__ = "1.0.0"

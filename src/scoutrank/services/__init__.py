"""
scoutrank services: business logic for data processing pipelines.

Pipeline stages:
1. Appearance ingestion: per-match player stats into appearances
2. Profile enrichment: provider profiles linked and merged into players
3. Ratings: see scoutrank.ratings.pipeline

Usage:
    from scoutrank.services import (
        ingest_appearances,
        enrich_profiles,
    )
"""

from scoutrank.services.appearance_ingestion import (
    AppearanceIngestionStats,
    ingest_appearances,
)
from scoutrank.services.profile_enrichment import (
    EnrichmentOutcome,
    EnrichmentStats,
    enrich_profile,
    enrich_profiles,
)

__all__ = [
    # Appearance ingestion
    "ingest_appearances",
    "AppearanceIngestionStats",
    # Profile enrichment
    "enrich_profile",
    "enrich_profiles",
    "EnrichmentOutcome",
    "EnrichmentStats",
]

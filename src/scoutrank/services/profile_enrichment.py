"""
Profile enrichment service: links provider profiles and merges them in.

For every provider profile payload:
1. Parse it with the provider's adapter
2. Resolve the provider ID to a canonical player (creating or queueing)
3. Merge the normalized profile into the canonical record
4. Store any provider-reported aggregates (FotMob season/career stats)

Payloads for players that end up in the review queue are kept on the
queue item; they are merged once a reviewer links them and the profile
is enriched again.

Usage:
    from scoutrank.services.profile_enrichment import enrich_profiles

    with get_session() as session:
        stats = enrich_profiles(session, "fotmob", payloads)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from scoutrank.players.identity import ExternalPlayerRecord, PlayerIdentityService
from scoutrank.players.merge import CanonicalMergeEngine, MergeResult
from scoutrank.providers.profiles import FotMobProfile, ProviderProfile, normalize_profile, parse_profile

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentOutcome:
    """What happened to one profile payload."""
    provider: str
    provider_player_id: str
    player_id: Optional[int] = None
    player_created: bool = False
    queued: bool = False
    merge: Optional[MergeResult] = None
    aggregates_stored: int = 0


@dataclass
class EnrichmentStats:
    """Statistics from a profile enrichment run."""
    total_profiles: int = 0
    profiles_merged: int = 0
    players_created: int = 0
    queued_for_review: int = 0
    fields_updated: int = 0
    conflicts_logged: int = 0
    aggregates_stored: int = 0
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of enrichment results."""
        lines = [
            "Profile enrichment complete:",
            f"  Total profiles:           {self.total_profiles}",
            f"  Profiles merged:          {self.profiles_merged}",
            f"  Players created:          {self.players_created}",
            f"  Queued for review:        {self.queued_for_review}",
            f"  Fields updated:           {self.fields_updated}",
            f"  Conflicts logged:         {self.conflicts_logged}",
            f"  Aggregates stored:        {self.aggregates_stored}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


def record_from_profile(provider: str, profile: ProviderProfile) -> ExternalPlayerRecord:
    """Identity evidence carried by a provider profile."""
    return ExternalPlayerRecord(
        provider=provider,
        provider_player_id=profile.provider_player_id,
        name=profile.name,
        birth_date=profile.birth_date,
        nationality=profile.nationality,
        position=profile.position,
        team_name=profile.team_name,
        provider_team_id=profile.team_id,
        provider_competition_id=getattr(profile, "league_id", None),
    )


def enrich_profile(
    session: Session,
    provider: str,
    payload: Mapping[str, Any],
    identity_service: Optional[PlayerIdentityService] = None,
    merge_engine: Optional[CanonicalMergeEngine] = None,
    competition_id: Optional[int] = None,
    team_id: Optional[int] = None,
) -> EnrichmentOutcome:
    """
    Link and merge one provider profile payload.

    Changes are flushed, not committed.

    Raises:
        ValueError: If the provider has no profile adapter
        KeyError: If the payload has no player id
    """
    identity_service = identity_service or PlayerIdentityService(session)
    merge_engine = merge_engine or CanonicalMergeEngine(session)

    profile = parse_profile(provider, payload)
    outcome = EnrichmentOutcome(provider=provider, provider_player_id=profile.provider_player_id)

    link = identity_service.resolve_and_link(
        record_from_profile(provider, profile),
        payload=dict(payload),
        competition_id=competition_id,
        team_id=team_id,
    )
    if link.player_id is None:
        outcome.queued = link.queued
        return outcome

    outcome.player_id = link.player_id
    outcome.player_created = link.player_created
    outcome.merge = merge_engine.merge_profile(link.player_id, provider, normalize_profile(profile), raw=dict(payload))

    if isinstance(profile, FotMobProfile):
        outcome.aggregates_stored = _store_fotmob_aggregates(merge_engine, link.player_id, provider, profile)

    return outcome


def enrich_profiles(
    session: Session,
    provider: str,
    payloads: Sequence[Mapping[str, Any]],
    competition_id: Optional[int] = None,
) -> EnrichmentStats:
    """
    Enrich a list of profile payloads from one provider.

    Each payload runs in its own savepoint, so a bad payload is recorded
    as an error without losing the others. Commits at the end.
    """
    identity_service = PlayerIdentityService(session)
    merge_engine = CanonicalMergeEngine(session)
    stats = EnrichmentStats(total_profiles=len(payloads))

    for payload in payloads:
        try:
            with session.begin_nested():
                outcome = enrich_profile(
                    session, provider, payload,
                    identity_service=identity_service,
                    merge_engine=merge_engine,
                    competition_id=competition_id,
                )
        except (ValueError, KeyError, TypeError) as e:
            error_msg = f"{provider}:{payload.get('id', '?')}: {e}"
            stats.errors.append(error_msg)
            logger.error("Error enriching profile: %s", error_msg)
            continue

        if outcome.queued:
            stats.queued_for_review += 1
            continue
        if outcome.merge is not None:
            stats.profiles_merged += 1
            stats.fields_updated += len(outcome.merge.updated_fields)
            stats.conflicts_logged += len(outcome.merge.conflicts)
        if outcome.player_created:
            stats.players_created += 1
        stats.aggregates_stored += outcome.aggregates_stored

    session.commit()
    logger.info(stats.summary())
    return stats


def _store_fotmob_aggregates(
    merge_engine: CanonicalMergeEngine,
    player_id: int,
    provider: str,
    profile: FotMobProfile,
) -> int:
    """Latest season as the 'season' window plus the career sum."""
    stored = 0
    if profile.seasons:
        latest = profile.seasons[0]
        merge_engine.store_provider_aggregates(
            player_id, provider, latest.stats, window="season", season=latest.season_name,
        )
        stored += 1

    career = profile.career_stats()
    if career is not None:
        merge_engine.store_provider_aggregates(player_id, provider, career, window="career")
        stored += 1
    return stored

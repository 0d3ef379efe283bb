"""
Player identity service for matching provider records to canonical players.

This is the core service for player identification. It handles:
- Finding existing players by provider ID or name
- Scoring candidate matches on name, birth date and nationality
- Creating new canonical players when nobody matches
- Adding uncertain matches to the review queue
- Merging duplicate player records

The matching strategy prioritizes reliability:
1. Exact provider ID link - 100% reliable
2. Exact normalized name, scored
3. Similar names within the same team, then the same competition
4. Auto-link only when one candidate clears the confidence threshold
   and leads the runner-up clearly; everything else is queued

Each resolve() call is independent and only reads the current snapshot
of canonical players. Writes happen in resolve_and_link() and are
flushed, not committed: the caller owns the transaction.

Concurrent ingestion of the same provider ID is guarded by the unique
constraints on player_external_ids. A losing writer gets an
IntegrityError on flush; retrying the record in a fresh transaction
hits the exact-link path.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from scoutrank.config import settings
from scoutrank.db.models import (
    Appearance,
    Player,
    PlayerExternalId,
    PlayerFieldConflict,
    ProviderPlayerAggregate,
    ProviderPlayerProfile,
    UnresolvedExternalPlayer,
)
from scoutrank.exceptions import NotFoundError
from scoutrank.players.aliases import normalize_name, similarity
from scoutrank.players.positions import map_position_to_group, map_position_to_group_with_default

logger = logging.getLogger(__name__)

# Score contributions
NAME_WEIGHT = 0.6
BIRTHDATE_BONUS = 0.15
BIRTHDATE_MISMATCH_PENALTY = 0.3
NATIONALITY_BONUS = 0.05

EXACT_LINK_CONFIDENCE = 1.0


@dataclass
class ExternalPlayerRecord:
    """
    A player as described by one provider.

    Only provider and provider_player_id identify the record; everything
    else is evidence for matching and seed data for a new canonical player.
    """
    provider: str
    provider_player_id: str
    name: str
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    position: Optional[str] = None
    team_name: Optional[str] = None
    provider_team_id: Optional[str] = None
    provider_competition_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["birth_date"] = self.birth_date.isoformat() if self.birth_date else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExternalPlayerRecord":
        birth_date = data.get("birth_date")
        if isinstance(birth_date, str):
            birth_date = date.fromisoformat(birth_date)
        return cls(
            provider=data["provider"],
            provider_player_id=str(data["provider_player_id"]),
            name=data["name"],
            birth_date=birth_date,
            nationality=data.get("nationality"),
            position=data.get("position"),
            team_name=data.get("team_name"),
            provider_team_id=data.get("provider_team_id"),
            provider_competition_id=data.get("provider_competition_id"),
        )


@dataclass
class MatchCandidate:
    """A canonical player considered for a provider record."""
    player_id: int
    score: float
    reasons: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"<MatchCandidate(id={self.player_id}, score={self.score:.2f})>"


@dataclass
class ResolveResult:
    """
    Outcome of resolving one provider record.

    status is one of:
    - 'matched': player_id is safe to link
    - 'new': nobody matched (reason 'no_candidates_found') or the best
      candidate is below the threshold
    - 'ambiguous': candidates exist but none is a clear winner; must be
      reviewed, never auto-linked

    player_id is also set for an ambiguous result whose top candidate
    cleared the threshold, so the reviewer sees the front runner.
    """
    player_id: Optional[int]
    confidence: float
    is_new: bool
    reason: str
    status: str
    candidate_ids: list[int] = field(default_factory=list)

    @property
    def is_matched(self) -> bool:
        return self.status == "matched"

    def __repr__(self) -> str:
        return (
            f"<ResolveResult(status='{self.status}', player={self.player_id}, "
            f"conf={self.confidence:.2f}, reason='{self.reason}')>"
        )


@dataclass
class LinkOutcome:
    """What resolve_and_link() did with a record."""
    player_id: Optional[int]
    resolution: ResolveResult
    link_written: bool = False
    player_created: bool = False
    queued: bool = False


class PlayerIdentityService:
    """
    Service for managing player identity across providers.

    This service is the single point of contact for all player matching.
    When ingesting provider data, use this service to convert provider
    player records into canonical player IDs.

    Usage:
        service = PlayerIdentityService(session)

        outcome = service.resolve_and_link(
            ExternalPlayerRecord(
                provider="fotmob",
                provider_player_id="737066",
                name="Steven Bergwijn",
                birth_date=date(1997, 10, 8),
            ),
            payload=raw_profile,
        )

        if outcome.player_id is not None:
            # Linked (existing or newly created player)
        elif outcome.queued:
            # Needs manual review
    """

    def __init__(self, db: Session):
        """
        Initialize the identity service.

        Args:
            db: SQLAlchemy session for database operations
        """
        self.db = db

        # Load thresholds from config
        self.confidence_threshold = settings.identity_confidence_threshold
        self.clear_winner_margin = settings.identity_clear_winner_margin
        self.candidate_min_score = settings.identity_candidate_min_score
        self.team_similarity = settings.identity_team_similarity
        self.competition_similarity = settings.identity_competition_similarity
        self.name_birthdate_score = settings.identity_name_birthdate_score

    # =========================================================================
    # Main Public Methods
    # =========================================================================

    def resolve(
        self,
        record: ExternalPlayerRecord,
        competition_id: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> ResolveResult:
        """
        Decide which canonical player a provider record describes.

        Read-only. See the module docstring for the strategy.

        Args:
            record: The provider's player record
            competition_id: Optional competition scope for similar-name search
            team_id: Optional team scope for similar-name search

        Returns:
            ResolveResult with status 'matched', 'new' or 'ambiguous'
        """
        link = self._find_link(record.provider, record.provider_player_id)
        if link:
            return ResolveResult(
                player_id=link.player_id,
                confidence=EXACT_LINK_CONFIDENCE,
                is_new=False,
                reason="existing_external_id",
                status="matched",
            )

        candidates = self.find_candidates(record, competition_id, team_id)

        if not candidates:
            return ResolveResult(
                player_id=None,
                confidence=0.0,
                is_new=True,
                reason="no_candidates_found",
                status="new",
            )

        best = candidates[0]

        if len(candidates) == 1 and best.score >= self.confidence_threshold:
            return ResolveResult(
                player_id=best.player_id,
                confidence=best.score,
                is_new=False,
                reason=f"single_match: {', '.join(best.reasons)}",
                status="matched",
                candidate_ids=[best.player_id],
            )

        if len(candidates) > 1:
            margin = best.score - candidates[1].score
            if best.score >= self.confidence_threshold and margin > self.clear_winner_margin:
                return ResolveResult(
                    player_id=best.player_id,
                    confidence=best.score,
                    is_new=False,
                    reason=f"best_match_clear_winner: {', '.join(best.reasons)}",
                    status="matched",
                    candidate_ids=[c.player_id for c in candidates],
                )

        above_threshold = best.score >= self.confidence_threshold
        if len(candidates) > 1:
            reason = f"ambiguous_multiple_candidates_{len(candidates)}"
        else:
            reason = f"low_confidence_{round(best.score * 100)}%"

        return ResolveResult(
            player_id=best.player_id if above_threshold else None,
            confidence=best.score,
            is_new=not above_threshold,
            reason=reason,
            status="ambiguous",
            candidate_ids=[c.player_id for c in candidates],
        )

    def resolve_and_link(
        self,
        record: ExternalPlayerRecord,
        payload: Any = None,
        competition_id: Optional[int] = None,
        team_id: Optional[int] = None,
        create_if_new: bool = True,
    ) -> LinkOutcome:
        """
        Resolve a record and persist the decision.

        - matched: the provider link is upserted
        - no candidates at all: a canonical player is created from the
          record and linked with confidence 1.0 (unless create_if_new is
          False, in which case the record is queued)
        - anything else: the record is queued for review

        Changes are flushed but not committed.

        Args:
            record: The provider's player record
            payload: Raw provider payload, kept on review queue items
            competition_id: Optional competition scope
            team_id: Optional team scope
            create_if_new: Create a canonical player when nobody matches

        Returns:
            LinkOutcome describing the write that happened
        """
        resolution = self.resolve(record, competition_id, team_id)

        if resolution.is_matched:
            self.upsert_external_link(
                player_id=resolution.player_id,
                provider=record.provider,
                provider_player_id=record.provider_player_id,
                confidence=resolution.confidence,
                provider_team_id=record.provider_team_id,
                provider_competition_id=record.provider_competition_id,
            )
            self.db.flush()
            return LinkOutcome(
                player_id=resolution.player_id,
                resolution=resolution,
                link_written=True,
            )

        if resolution.reason == "no_candidates_found" and create_if_new:
            player = self.create_player(record, competition_id=competition_id, team_id=team_id)
            self.upsert_external_link(
                player_id=player.id,
                provider=record.provider,
                provider_player_id=record.provider_player_id,
                confidence=EXACT_LINK_CONFIDENCE,
                provider_team_id=record.provider_team_id,
                provider_competition_id=record.provider_competition_id,
            )
            self.db.flush()
            logger.debug("Created player %s for %s:%s", player.id, record.provider, record.provider_player_id)
            return LinkOutcome(
                player_id=player.id,
                resolution=resolution,
                link_written=True,
                player_created=True,
            )

        self.add_to_review_queue(record, payload, resolution)
        self.db.flush()
        logger.info(
            "Queued %s:%s (%s) for review: %s",
            record.provider, record.provider_player_id, record.name, resolution.reason,
        )
        return LinkOutcome(player_id=None, resolution=resolution, queued=True)

    def find_candidates(
        self,
        record: ExternalPlayerRecord,
        competition_id: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> list[MatchCandidate]:
        """
        Find and score canonical players that could be this record.

        Exact normalized-name matches come first. Only when none survive
        scoring is the search broadened to similar names on the team,
        then in the competition.

        Returns:
            Candidates sorted by score (highest first)
        """
        normalized = normalize_name(record.name)
        if not normalized:
            return []

        candidates = []
        for player in self.db.query(Player).filter(Player.name_normalized == normalized).all():
            candidate = self.score_candidate(record, player)
            if candidate.score > self.candidate_min_score:
                candidates.append(candidate)

        if not candidates and team_id is not None:
            candidates = self._scoped_search(
                record, normalized, Player.team_id == team_id, self.team_similarity
            )

        if not candidates and competition_id is not None:
            candidates = self._scoped_search(
                record, normalized, Player.competition_id == competition_id, self.competition_similarity
            )

        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    def score_candidate(self, record: ExternalPlayerRecord, player: Player) -> MatchCandidate:
        """
        Score how likely a canonical player is the provider's player.

        name similarity * 0.6, then +0.15 for the same birth date or
        -0.3 for a different one (floored at 0), +0.05 for matching
        nationality, capped at 1.0. An identical normalized name with the
        same birth date scores at least identity_name_birthdate_score.
        """
        record_name = normalize_name(record.name)
        player_name = player.name_normalized or normalize_name(player.name)
        name_similarity = similarity(record_name, player_name)

        reasons = []
        if name_similarity == 1.0:
            reasons.append("exact_name_match")
        else:
            reasons.append(f"name_similarity_{round(name_similarity * 100)}%")
        score = name_similarity * NAME_WEIGHT

        birthdate_match = False
        if record.birth_date and player.birth_date:
            if record.birth_date == player.birth_date:
                birthdate_match = True
                score += BIRTHDATE_BONUS
                reasons.append("birthdate_match")
            else:
                score = max(0.0, score - BIRTHDATE_MISMATCH_PENALTY)
                reasons.append("birthdate_mismatch")

        if _nationalities_match(record.nationality, player.nationality):
            score += NATIONALITY_BONUS
            reasons.append("nationality_match")

        # Same name and same birth date is about as strong as it gets
        if name_similarity == 1.0 and birthdate_match:
            score = max(score, self.name_birthdate_score)

        return MatchCandidate(player_id=player.id, score=min(score, 1.0), reasons=reasons)

    def create_player(
        self,
        record: ExternalPlayerRecord,
        competition_id: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> Player:
        """
        Create a canonical player seeded from a provider record.

        Only call this when you're sure this is a new player (no
        candidates, or a reviewer said so). The provider is recorded as
        the source of every field it supplied. An unmappable position
        leaves the MID placeholder group without a source, so the first
        provider that knows the group fills it.
        """
        player = Player(
            name=record.name,
            name_normalized=normalize_name(record.name),
            birth_date=record.birth_date,
            nationality=record.nationality,
            position=record.position,
            position_group=map_position_to_group_with_default(record.position),
            team_id=team_id,
            competition_id=competition_id,
        )
        sources = {"name": record.provider}
        for field_name in ("birth_date", "nationality", "position"):
            if getattr(record, field_name):
                sources[field_name] = record.provider
        if map_position_to_group(record.position):
            sources["position_group"] = record.provider
        player.field_sources = sources

        self.db.add(player)
        self.db.flush()  # Get the ID without committing
        return player

    def upsert_external_link(
        self,
        player_id: int,
        provider: str,
        provider_player_id: str,
        confidence: float,
        provider_team_id: Optional[str] = None,
        provider_competition_id: Optional[str] = None,
    ) -> PlayerExternalId:
        """
        Create or update the link between a provider ID and a player.

        A player keeps at most one link per provider: an existing link is
        updated in place. If the provider ID was linked to a different
        player (reviewer correction), it moves to this one.
        """
        by_native = self._find_link(provider, provider_player_id)
        by_player = self.db.query(PlayerExternalId).filter(
            PlayerExternalId.player_id == player_id,
            PlayerExternalId.provider == provider,
        ).first()

        link = by_native or by_player
        if by_native and by_player and by_native is not by_player:
            # Player already had another ID at this provider; the native ID wins
            self.db.delete(by_player)
            self.db.flush()

        if link is None:
            link = PlayerExternalId(player_id=player_id, provider=provider)
            self.db.add(link)

        link.player_id = player_id
        link.provider_player_id = str(provider_player_id)
        link.provider_team_id = provider_team_id
        link.provider_competition_id = provider_competition_id
        link.confidence = Decimal(str(round(confidence, 4)))
        link.updated_at = datetime.utcnow()
        return link

    def add_to_review_queue(
        self,
        record: ExternalPlayerRecord,
        payload: Any,
        resolution: ResolveResult,
    ) -> UnresolvedExternalPlayer:
        """
        Add (or refresh) a review queue item for a provider record.

        One item per (provider, provider_player_id); re-queuing resets it
        to pending with the latest payload and candidates.
        """
        item = self.db.query(UnresolvedExternalPlayer).filter(
            UnresolvedExternalPlayer.provider == record.provider,
            UnresolvedExternalPlayer.provider_player_id == str(record.provider_player_id),
        ).first()

        if item is None:
            item = UnresolvedExternalPlayer(
                provider=record.provider,
                provider_player_id=str(record.provider_player_id),
            )
            self.db.add(item)

        item.scraped_name = record.name
        item.payload = {"record": record.to_dict(), "raw": payload}
        item.candidate_player_ids = list(resolution.candidate_ids)
        item.top_confidence = Decimal(str(round(resolution.confidence, 4)))
        item.reason = resolution.reason
        item.status = "pending"
        item.resolved_player_id = None
        item.resolved_by = None
        item.resolved_at = None
        item.updated_at = datetime.utcnow()
        return item

    def resolve_review_item(
        self,
        review_id: int,
        action: str,
        player_id: Optional[int] = None,
        resolved_by: str = "admin",
    ) -> Optional[int]:
        """
        Resolve a review queue item.

        Called from the admin surface to handle unmatched records.

        Args:
            review_id: ID of the review queue item
            action: One of 'match', 'create', 'ignore'
            player_id: Required if action is 'match'
            resolved_by: Who resolved this (for audit)

        Returns:
            The player ID (for 'match' and 'create') or None (for 'ignore')

        Raises:
            NotFoundError: If the item or the chosen player doesn't exist
            ValueError: If action is unknown, or 'match' without player_id
        """
        item = self.db.get(UnresolvedExternalPlayer, review_id)
        if not item:
            raise NotFoundError("Review item", review_id)

        record = self._record_from_item(item)
        result_player_id = None

        if action == "match":
            if player_id is None:
                raise ValueError("player_id required for 'match' action")
            if self.db.get(Player, player_id) is None:
                raise NotFoundError("Player", player_id)

            self.upsert_external_link(
                player_id=player_id,
                provider=record.provider,
                provider_player_id=record.provider_player_id,
                confidence=EXACT_LINK_CONFIDENCE,
                provider_team_id=record.provider_team_id,
                provider_competition_id=record.provider_competition_id,
            )
            item.status = "matched"
            result_player_id = player_id

        elif action == "create":
            player = self.create_player(record)
            self.upsert_external_link(
                player_id=player.id,
                provider=record.provider,
                provider_player_id=record.provider_player_id,
                confidence=EXACT_LINK_CONFIDENCE,
                provider_team_id=record.provider_team_id,
                provider_competition_id=record.provider_competition_id,
            )
            item.status = "new_player"
            result_player_id = player.id

        elif action == "ignore":
            item.status = "ignored"

        else:
            raise ValueError(f"Unknown action: {action}")

        item.resolved_player_id = result_player_id
        item.resolved_by = resolved_by
        item.resolved_at = datetime.utcnow()
        self.db.commit()

        return result_player_id

    def get_linked_player_id(self, provider: str, provider_player_id: str) -> Optional[int]:
        """Canonical player ID for a provider ID, or None if it isn't linked."""
        link = self._find_link(provider, provider_player_id)
        return link.player_id if link else None

    def pending_review_items(self, limit: int = 50) -> list[UnresolvedExternalPlayer]:
        """Oldest pending review items first."""
        return (
            self.db.query(UnresolvedExternalPlayer)
            .filter(UnresolvedExternalPlayer.status == "pending")
            .order_by(UnresolvedExternalPlayer.created_at, UnresolvedExternalPlayer.id)
            .limit(limit)
            .all()
        )

    def merge_players(self, keep_id: int, merge_id: int) -> None:
        """
        Merge two canonical player records into one.

        Use this when a duplicate slipped through (for example two
        concurrent ingestions of the same athlete). Provider links,
        appearances, profiles and aggregates move to keep_id where keep_id
        doesn't already have an equivalent row. Open conflicts of the
        merged player are dropped with it; derived rating rows are
        regenerated by the next rating run.

        Raises:
            NotFoundError: If either player doesn't exist
        """
        keep_player = self.db.get(Player, keep_id)
        merge_player = self.db.get(Player, merge_id)

        if not keep_player:
            raise NotFoundError("Player", keep_id)
        if not merge_player:
            raise NotFoundError("Player", merge_id)

        keep_providers = {
            provider for (provider,) in self.db.query(PlayerExternalId.provider).filter(
                PlayerExternalId.player_id == keep_id
            )
        }
        for link in list(merge_player.external_ids):
            if link.provider not in keep_providers:
                link.player_id = keep_id

        keep_fixtures = {
            (provider, fixture) for provider, fixture in self.db.query(
                Appearance.provider, Appearance.provider_fixture_id
            ).filter(Appearance.player_id == keep_id)
        }
        for appearance in self.db.query(Appearance).filter(Appearance.player_id == merge_id).all():
            if (appearance.provider, appearance.provider_fixture_id) not in keep_fixtures:
                appearance.player_id = keep_id

        for model, key in (
            (ProviderPlayerProfile, "provider"),
            (ProviderPlayerAggregate, "window"),
        ):
            existing = {
                (row.provider, getattr(row, key))
                for row in self.db.query(model).filter(model.player_id == keep_id)
            }
            for row in self.db.query(model).filter(model.player_id == merge_id).all():
                if (row.provider, getattr(row, key)) not in existing:
                    row.player_id = keep_id

        # Fill canonical gaps from the merged record
        for field_name in ("birth_date", "nationality", "height_cm", "weight_kg",
                           "preferred_foot", "photo_url", "position"):
            if getattr(keep_player, field_name) is None and getattr(merge_player, field_name) is not None:
                setattr(keep_player, field_name, getattr(merge_player, field_name))
                source = (merge_player.field_sources or {}).get(field_name)
                if source:
                    keep_player.field_sources = {**(keep_player.field_sources or {}), field_name: source}

        # The placeholder group gives way to a group some provider actually supplied
        keep_sources = keep_player.field_sources or {}
        merge_group_source = (merge_player.field_sources or {}).get("position_group")
        if "position_group" not in keep_sources and merge_group_source:
            keep_player.position_group = merge_player.position_group
            keep_player.field_sources = {**keep_sources, "position_group": merge_group_source}

        self.db.query(PlayerFieldConflict).filter(PlayerFieldConflict.player_id == merge_id).delete()
        self.db.query(UnresolvedExternalPlayer).filter(
            UnresolvedExternalPlayer.resolved_player_id == merge_id
        ).update({"resolved_player_id": keep_id})

        self.db.flush()
        self.db.expire(merge_player, ["external_ids"])
        self.db.delete(merge_player)
        self.db.commit()
        logger.info("Merged player %s into %s", merge_id, keep_id)

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _find_link(self, provider: str, provider_player_id: str) -> Optional[PlayerExternalId]:
        return self.db.query(PlayerExternalId).filter(
            PlayerExternalId.provider == provider,
            PlayerExternalId.provider_player_id == str(provider_player_id),
        ).first()

    def _scoped_search(
        self,
        record: ExternalPlayerRecord,
        normalized_name: str,
        scope,
        min_similarity: float,
    ) -> list[MatchCandidate]:
        """Score players in a team or competition whose names are close enough."""
        candidates = []
        for player in self.db.query(Player).filter(scope).all():
            player_name = player.name_normalized or normalize_name(player.name)
            if similarity(normalized_name, player_name) >= min_similarity:
                candidates.append(self.score_candidate(record, player))
        return candidates

    def _record_from_item(self, item: UnresolvedExternalPlayer) -> ExternalPlayerRecord:
        payload = item.payload or {}
        if isinstance(payload, dict) and "record" in payload:
            return ExternalPlayerRecord.from_dict(payload["record"])
        return ExternalPlayerRecord(
            provider=item.provider,
            provider_player_id=item.provider_player_id,
            name=item.scraped_name,
        )


def _nationalities_match(a: Optional[str], b: Optional[str]) -> bool:
    """Equal, or one contained in the other ("Korea" / "Korea Republic")."""
    if not a or not b:
        return False
    a_norm = normalize_name(a)
    b_norm = normalize_name(b)
    if not a_norm or not b_norm:
        return False
    return a_norm == b_norm or a_norm in b_norm or b_norm in a_norm

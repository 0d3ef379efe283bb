"""
Rating pipeline: orchestrates rolling stats and rating computation.

One run:
1. Load the players in scope (all, one competition, or one country)
2. Load their appearances and build the 365-day and last-5 windows
3. Collect eligible players (enough minutes in the 365-day window)
4. Build distributions over the whole eligible population, then score
5. Compute competition strength from the level scores
6. Persist rolling stats, ratings and competition ratings

Persistence is chunked (settings.rating_batch_size) and commits after
every chunk. A run that fails mid-way leaves earlier chunks written;
since every write is an upsert by natural key, re-running from scratch
converges to the same state.

Usage:
    from scoutrank.ratings.pipeline import RatingPipeline

    with get_session() as session:
        result = RatingPipeline(session).recompute(country="Netherlands")
        logger.info(result.summary())
"""

import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from itertools import islice
from typing import Iterable, Mapping, Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from scoutrank.config import settings
from scoutrank.db.models import (
    Appearance,
    Competition,
    CompetitionRating,
    Player,
    PlayerRating,
    PlayerRollingStats,
    RatingProfile,
    UpdateLog,
)
from scoutrank.ratings.aggregate import (
    SCORED_FEATURE_KEYS,
    AppearanceStats,
    MatchLine,
    RollingStatWindow,
    aggregate,
    aggregate_last_n,
)
from scoutrank.ratings.constants import (
    DEFAULT_RATING_PROFILES,
    POSITION_GROUPS,
    ProfileWeights,
    is_valid_position_group,
)
from scoutrank.ratings.scoring import (
    ComputedRating,
    PlayerRatingInput,
    compute_all_ratings,
    compute_competition_strength,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bound on the size of IN (...) lists when loading appearances
_ID_CHUNK = 500


@dataclass
class RatingRunResult:
    """Statistics from a rating run."""
    players_processed: int = 0
    ratings_computed: int = 0
    competitions_rated: int = 0
    rolling_stats_written: int = 0
    stale_ratings_removed: int = 0
    stale_competitions_removed: int = 0
    dry_run: bool = False
    from_date: Optional[date] = None
    to_date: Optional[date] = None

    def summary(self) -> str:
        """Return a human-readable summary of the run."""
        lines = [
            f"Rating run complete{' (dry run)' if self.dry_run else ''}:",
            f"  Window:                  {self.from_date} to {self.to_date}",
            f"  Players processed:       {self.players_processed}",
            f"  Ratings computed:        {self.ratings_computed}",
            f"  Competitions rated:      {self.competitions_rated}",
        ]
        if not self.dry_run:
            lines.append(f"  Rolling stats written:   {self.rolling_stats_written}")
            lines.append(f"  Stale ratings removed:   {self.stale_ratings_removed}")
            lines.append(f"  Stale competitions:      {self.stale_competitions_removed}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "players_processed": self.players_processed,
            "ratings_computed": self.ratings_computed,
            "competitions_rated": self.competitions_rated,
            "rolling_stats_written": self.rolling_stats_written,
            "stale_ratings_removed": self.stale_ratings_removed,
            "stale_competitions_removed": self.stale_competitions_removed,
            "dry_run": self.dry_run,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
        }


@dataclass
class _PlayerWindows:
    player_id: int
    competition_id: int
    rolling: RollingStatWindow
    last5: RollingStatWindow


class RatingPipeline:
    """
    Recomputes rolling stats and ratings for a cohort of players.

    Window lengths and thresholds default to settings and can be
    overridden per pipeline (mainly for tests and backfills).
    """

    def __init__(
        self,
        db: Session,
        min_minutes: Optional[int] = None,
        window_days: Optional[int] = None,
        form_matches: Optional[int] = None,
        top_n: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.min_minutes = settings.rating_min_minutes if min_minutes is None else min_minutes
        self.window_days = settings.rating_window_days if window_days is None else window_days
        self.form_matches = settings.rating_form_matches if form_matches is None else form_matches
        self.top_n = settings.competition_strength_top_n if top_n is None else top_n
        self.batch_size = settings.rating_batch_size if batch_size is None else batch_size

    def recompute(
        self,
        competition_id: Optional[int] = None,
        country: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> RatingRunResult:
        """
        Recompute rolling stats and ratings.

        Args:
            competition_id: Only players currently in this competition
            country: Only players in competitions of this country
            from_date: Start of the rolling window (default: to_date - window_days)
            to_date: End of the rolling window (default: today)
            dry_run: Compute everything but write nothing
            today: Reference date for the default window

        Returns:
            RatingRunResult with counts

        Raises:
            ValueError: If from_date is after to_date
        """
        started = time.monotonic()
        to_date = to_date or today or date.today()
        from_date = from_date or (to_date - timedelta(days=self.window_days))
        if from_date > to_date:
            raise ValueError(f"from_date {from_date} is after to_date {to_date}")

        result = RatingRunResult(dry_run=dry_run, from_date=from_date, to_date=to_date)
        logger.info(
            "Starting rating computation: competition=%s, country=%s, window=%s..%s, dry_run=%s",
            competition_id or "all", country or "all", from_date, to_date, dry_run,
        )

        players = self._load_players(competition_id, country)
        result.players_processed = len(players)
        logger.info("Found %d players", len(players))

        competitions = self.db.query(Competition).all()
        # Plain values: the chunked writes below commit and expire ORM instances
        tiers = {c.id: c.tier for c in competitions}
        scope_ids = _competition_scope(competitions, competition_id, country)
        lines_by_player = self._load_match_lines([p.id for p in players])

        # Phase 1: windows for everyone, eligibility by minutes
        windows: list[_PlayerWindows] = []
        rating_inputs: list[PlayerRatingInput] = []
        for player in players:
            lines = lines_by_player.get(player.id, [])
            rolling = aggregate(lines, from_date, to_date)
            last5 = aggregate_last_n(lines, self.form_matches)
            windows.append(_PlayerWindows(player.id, player.competition_id, rolling, last5))

            if rolling.minutes >= self.min_minutes and is_valid_position_group(player.position_group):
                rating_inputs.append(PlayerRatingInput(
                    player_id=player.id,
                    competition_id=player.competition_id,
                    position_group=player.position_group,
                    features365=rolling.features,
                    features_last5=last5.features,
                    tier=tiers.get(player.competition_id),
                ))

        logger.info(
            "%d players meet minimum minutes (%d)", len(rating_inputs), self.min_minutes
        )

        # Phase 2: score against the full population
        ratings = compute_all_ratings(rating_inputs, load_profiles(self.db))
        result.ratings_computed = len(ratings)

        strengths = self._competition_strengths(ratings)
        result.competitions_rated = len(strengths)
        logger.info("Computed %d ratings across %d competitions", len(ratings), len(strengths))

        if dry_run:
            logger.info(result.summary())
            return result

        result.rolling_stats_written = self._write_rolling_stats(windows, from_date, to_date)
        self._write_ratings(ratings)
        result.stale_ratings_removed = self._remove_stale_ratings(
            windows, {(r.player_id, r.competition_id) for r in ratings}
        )
        self._write_competition_ratings(strengths, tiers)
        result.stale_competitions_removed = self._remove_stale_competition_ratings(scope_ids, strengths)

        self.db.add(UpdateLog(
            update_type="ratings",
            details=result.to_dict(),
            success=True,
            duration_seconds=Decimal(str(round(time.monotonic() - started, 2))),
        ))
        self.db.commit()

        logger.info(result.summary())
        return result

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_players(self, competition_id: Optional[int], country: Optional[str]) -> list[Player]:
        query = self.db.query(Player).filter(Player.competition_id.isnot(None))
        if competition_id is not None:
            query = query.filter(Player.competition_id == competition_id)
        if country is not None:
            query = query.join(Competition, Player.competition_id == Competition.id).filter(
                Competition.country == country
            )
        return query.order_by(Player.id).all()

    def _load_match_lines(self, player_ids: Sequence[int]) -> dict[int, list[MatchLine]]:
        lines: dict[int, list[MatchLine]] = {}
        for chunk in _chunked(player_ids, _ID_CHUNK):
            rows = self.db.query(Appearance).filter(Appearance.player_id.in_(chunk)).all()
            for row in rows:
                lines.setdefault(row.player_id, []).append(MatchLine(
                    match_date=row.match_date,
                    minutes=row.minutes,
                    stats=AppearanceStats.from_dict(row.stats),
                ))
        return lines

    def _competition_strengths(self, ratings: Sequence[ComputedRating]) -> dict[int, tuple[int, int]]:
        """competition_id -> (strength score, rated player count)."""
        level_scores: dict[int, list[int]] = {}
        for rating in ratings:
            level_scores.setdefault(rating.competition_id, []).append(rating.level_score)
        return {
            competition_id: (compute_competition_strength(scores, self.top_n), len(scores))
            for competition_id, scores in level_scores.items()
        }

    # =========================================================================
    # Persistence (chunked upserts, commit per chunk)
    # =========================================================================

    def _write_rolling_stats(self, windows: Sequence[_PlayerWindows], from_date: date, to_date: date) -> int:
        written = 0
        for chunk in _chunked(windows, self.batch_size):
            existing = {
                (row.player_id, row.competition_id): row
                for row in self.db.query(PlayerRollingStats).filter(
                    PlayerRollingStats.player_id.in_([w.player_id for w in chunk])
                )
            }
            for window in chunk:
                row = existing.get((window.player_id, window.competition_id))
                if row is None:
                    row = PlayerRollingStats(player_id=window.player_id, competition_id=window.competition_id)
                    self.db.add(row)
                row.from_date = from_date
                row.to_date = to_date
                row.minutes = window.rolling.minutes
                row.totals = dict(window.rolling.totals)
                row.per90 = dict(window.rolling.per90)
                row.rates = dict(window.rolling.rates)
                row.features = dict(window.rolling.features)
                row.last5 = window.last5.to_dict()
                written += 1
            self.db.commit()
        logger.info("Persisted %d rolling stats", written)
        return written

    def _write_ratings(self, ratings: Sequence[ComputedRating]) -> None:
        for chunk in _chunked(ratings, self.batch_size):
            existing = {
                (row.player_id, row.competition_id): row
                for row in self.db.query(PlayerRating).filter(
                    PlayerRating.player_id.in_([r.player_id for r in chunk])
                )
            }
            for rating in chunk:
                row = existing.get((rating.player_id, rating.competition_id))
                if row is None:
                    row = PlayerRating(player_id=rating.player_id, competition_id=rating.competition_id)
                    self.db.add(row)
                row.position_group = rating.position_group
                row.rating365 = rating.rating365
                row.rating_last5 = rating.rating_last5
                row.tier = rating.tier
                row.level_score = rating.level_score
            self.db.commit()
        logger.info("Persisted %d player ratings", len(ratings))

    def _remove_stale_ratings(
        self, windows: Sequence[_PlayerWindows], rated: set[tuple[int, int]]
    ) -> int:
        """
        Delete ratings of processed players that this run did not produce.

        Covers players who fell below the minimum minutes and players whose
        rating belongs to a competition they have since left.
        """
        removed = 0
        for chunk in _chunked([w.player_id for w in windows], self.batch_size):
            rows = self.db.query(PlayerRating).filter(PlayerRating.player_id.in_(chunk)).all()
            for row in rows:
                if (row.player_id, row.competition_id) not in rated:
                    self.db.delete(row)
                    removed += 1
            self.db.commit()
        if removed:
            logger.info("Removed %d stale player ratings", removed)
        return removed

    def _write_competition_ratings(
        self,
        strengths: Mapping[int, tuple[int, int]],
        tiers: Mapping[int, Optional[str]],
    ) -> None:
        existing = {
            row.competition_id: row
            for row in self.db.query(CompetitionRating).filter(
                CompetitionRating.competition_id.in_(list(strengths))
            )
        }
        for competition_id, (strength, count) in strengths.items():
            row = existing.get(competition_id)
            if row is None:
                self.db.add(CompetitionRating(
                    competition_id=competition_id,
                    tier=tiers.get(competition_id),
                    strength_score=strength,
                    player_count=count,
                ))
                continue
            row.tier = tiers.get(competition_id)
            row.strength_score = strength
            row.player_count = count
        self.db.commit()
        logger.info("Persisted %d competition ratings", len(strengths))

    def _remove_stale_competition_ratings(
        self, scope_ids: set[int], strengths: Mapping[int, tuple[int, int]]
    ) -> int:
        """Competitions in scope left without rated players lose their strength row."""
        stale = sorted(scope_ids - set(strengths))
        removed = 0
        for chunk in _chunked(stale, _ID_CHUNK):
            removed += self.db.query(CompetitionRating).filter(
                CompetitionRating.competition_id.in_(chunk)
            ).delete(synchronize_session=False)
        self.db.commit()
        if removed:
            logger.info("Removed %d stale competition ratings", removed)
        return removed


def _competition_scope(
    competitions: Iterable[Competition], competition_id: Optional[int], country: Optional[str]
) -> set[int]:
    """IDs of the competitions a run with these filters is responsible for."""
    if competition_id is not None:
        return {competition_id}
    return {c.id for c in competitions if country is None or c.country == country}


# =============================================================================
# Rating profiles
# =============================================================================

@dataclass
class SeedResult:
    seeded: bool
    count: int


def load_profiles(db: Session) -> dict[str, ProfileWeights]:
    """Stored profiles, falling back to the defaults for missing groups."""
    profiles = dict(DEFAULT_RATING_PROFILES)
    for row in db.query(RatingProfile).all():
        profiles[row.position_group] = ProfileWeights(
            position_group=row.position_group,
            weights=dict(row.weights or {}),
            invert_metrics=frozenset(row.invert_metrics or ()),
        )
    return profiles


def seed_rating_profiles(db: Session, force: bool = False) -> SeedResult:
    """
    Insert the default profile for every position group.

    Existing profiles are left alone unless force is set, in which case
    they are replaced by the defaults.
    """
    existing = db.query(RatingProfile).all()
    if existing and not force:
        logger.info("Rating profiles already exist (%d), skipping", len(existing))
        return SeedResult(seeded=False, count=len(existing))

    for row in existing:
        db.delete(row)
    db.flush()

    for group in POSITION_GROUPS:
        profile = DEFAULT_RATING_PROFILES[group]
        db.add(RatingProfile(
            position_group=group,
            weights=dict(profile.weights),
            invert_metrics=sorted(profile.invert_metrics),
        ))
    db.commit()
    logger.info("Seeded %d rating profiles", len(POSITION_GROUPS))
    return SeedResult(seeded=True, count=len(POSITION_GROUPS))


def update_rating_profile(
    db: Session,
    position_group: str,
    weights: Mapping[str, float],
    invert_metrics: Iterable[str] = (),
) -> RatingProfile:
    """
    Replace one position group's weights and inverted metrics.

    Raises:
        ValueError: Unknown position group, unknown feature key or a
            negative weight
    """
    if not is_valid_position_group(position_group):
        raise ValueError(f"Unknown position group: {position_group}")

    invert_metrics = sorted(set(invert_metrics))
    unknown = sorted((set(weights) | set(invert_metrics)) - set(SCORED_FEATURE_KEYS))
    if unknown:
        raise ValueError(f"Unknown feature keys: {', '.join(unknown)}")
    negative = sorted(key for key, weight in weights.items() if weight < 0)
    if negative:
        raise ValueError(f"Negative weights: {', '.join(negative)}")

    row = db.query(RatingProfile).filter(RatingProfile.position_group == position_group).first()
    if row is None:
        row = RatingProfile(position_group=position_group)
        db.add(row)
    row.weights = {key: float(weight) for key, weight in weights.items()}
    row.invert_metrics = invert_metrics
    db.commit()
    logger.info("Updated %s rating profile (%d metrics)", position_group, len(weights))
    return row


def _chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split a list into fixed-size chunks."""
    if size <= 0:
        return [list(items)]
    iterator = iter(items)
    chunks: list[list[T]] = []
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return chunks
        chunks.append(chunk)

"""
Weekly head-to-head matchup resolution

At the end of every season week each unresolved league matchup is decided by
comparing both participants' latest class-specific score. Resolved matchups are
never touched again, so the resolver can be re-run safely.
"""

import logging
from dataclasses import asdict, dataclass

from flask import current_app

from fantasy_corps.errors import PreconditionNotMet
from fantasy_corps.models import League
from fantasy_corps.services.persistence import (
    MatchupResolution,
    MutationBatch,
    PersistenceCoordinator,
    RecordIncrement,
)
from fantasy_corps.services.store import ScoringStore
from fantasy_corps.utils.logging_config import run_context

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass
class ResolutionResult:
    day: int
    week: int = None
    skipped: bool = False
    reason: str = None
    resolved: int = 0
    byes: int = 0
    ties: int = 0
    already_resolved: int = 0

    def to_dict(self):
        return asdict(self)


class WeeklyMatchupResolver:
    def __init__(self, store=None, coordinator=None):
        self.store = store or ScoringStore()
        self.coordinator = coordinator or PersistenceCoordinator(self.store)

    @classmethod
    def from_config(cls, config=None):
        if config is None:
            config = current_app.config
        store = ScoringStore()
        return cls(
            store,
            PersistenceCoordinator(store, batch_size=config.get("SCORING_BATCH_SIZE", 400)),
        )

    def resolve_day(self, day):
        """Resolve the week ending on ``day``; other days are a no-op"""
        if day % DAYS_PER_WEEK != 0:
            return ResolutionResult(
                day=day, skipped=True, reason=f"Day {day} is not the end of a week"
            )

        try:
            season = self.store.get_season()
        except PreconditionNotMet as e:
            logger.info(f"{e}. No matchups to resolve.")
            return ResolutionResult(day=day, skipped=True, reason=str(e))

        week = day // DAYS_PER_WEEK
        with run_context(season.season_uid, day):
            logger.info(f"End of week {week}. Determining class-based matchup winners...")
            return self.resolve_week(season, week, day)

    def resolve_week(self, season, week, day=None):
        result = ResolutionResult(day=day if day is not None else week * DAYS_PER_WEEK, week=week)
        batch = MutationBatch()
        class_scores = {}

        for league in League.for_season(season.season_id):
            for matchup in league.get_matchups(season.season_id, week):
                if matchup.is_resolved:
                    result.already_resolved += 1
                    continue

                if matchup.corps_class not in class_scores:
                    class_scores[matchup.corps_class] = self.store.get_class_scores(
                        season.season_id, matchup.corps_class
                    )
                mutation = self.resolve_matchup(
                    matchup, season.season_id, class_scores[matchup.corps_class]
                )
                batch.add(mutation)
                result.resolved += 1
                if matchup.is_bye:
                    result.byes += 1
                elif mutation.is_tie:
                    result.ties += 1

        if len(batch):
            self.coordinator.commit(batch)

        logger.info(
            f"Week {week}: resolved {result.resolved} matchups "
            f"({result.byes} byes, {result.ties} ties), "
            f"{result.already_resolved} already resolved"
        )
        return result

    @staticmethod
    def resolve_matchup(matchup, season_id, scores):
        """
        Outcome of one unresolved matchup.

        A bye is won by participant A without any comparison. Otherwise the higher
        class score wins and equal scores are a tie; a missing corps scores 0.
        """
        a_id = matchup.participant_a_id
        b_id = matchup.participant_b_id
        a_uid = matchup.participant_a.uid if matchup.participant_a else str(a_id)

        if matchup.is_bye:
            return MatchupResolution(matchup.id, a_id, False, {}, ())

        b_uid = matchup.participant_b.uid if matchup.participant_b else str(b_id)
        a_score = scores.get(a_id, 0) or 0
        b_score = scores.get(b_id, 0) or 0
        result_scores = {a_uid: a_score, b_uid: b_score}

        def record(user_id, **counts):
            return RecordIncrement(user_id, season_id, matchup.corps_class, **counts)

        if a_score > b_score:
            return MatchupResolution(
                matchup.id,
                a_id,
                False,
                result_scores,
                (record(a_id, wins=1), record(b_id, losses=1)),
            )
        if b_score > a_score:
            return MatchupResolution(
                matchup.id,
                b_id,
                False,
                result_scores,
                (record(a_id, losses=1), record(b_id, wins=1)),
            )
        return MatchupResolution(
            matchup.id,
            None,
            True,
            result_scores,
            (record(a_id, ties=1), record(b_id, ties=1)),
        )

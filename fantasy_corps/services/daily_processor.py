"""
Daily score processor

Scores every corps attending a show on one scored day, archives the day's
recap and queues profile, CorpsCoin and trophy writes. Off-season and live
seasons share this pipeline; they differ only in how caption scores are looked
up.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

import numpy as np
from flask import current_app

from fantasy_corps.errors import PreconditionNotMet, RunTimeoutError
from fantasy_corps.models.corps import A_CLASS, OPEN_CLASS, SOUNDSPORT, WORLD_CLASS
from fantasy_corps.models.season import SEASON_LENGTH
from fantasy_corps.models.trophy import CHAMPIONSHIP, FINALIST, METALS, REGIONAL
from fantasy_corps.services.bracket_service import (
    CHAMPIONSHIP_DAYS,
    BracketProgressionEngine,
    RoundKind,
)
from fantasy_corps.services.persistence import (
    CoinIncrement,
    CorpsScoreUpdate,
    MutationBatch,
    PersistenceCoordinator,
    RecapPut,
    TrophyReplace,
)
from fantasy_corps.services.store import ScoringStore
from fantasy_corps.utils.cache_utils import invalidate_scoring_cache
from fantasy_corps.utils.logging_config import bind_run_context, run_context
from fantasy_corps.utils.performance import PerformanceMonitor
from fantasy_corps.utils.regression import HistoricalIndex, RegressionEngine
from fantasy_corps.utils.scoring import (
    CAPTIONS,
    calculate_show_score,
    cap_caption_score,
    week_for_day,
)
from fantasy_corps.utils.synergy import SynergyCalculator

logger = logging.getLogger(__name__)

# CorpsCoin per show attended
CLASS_COIN_REWARDS = {
    WORLD_CLASS: 200,
    OPEN_CLASS: 100,
    A_CLASS: 50,
    SOUNDSPORT: 0,
}

REGIONAL_TROPHY_DAYS = {28, 35, 41, 42}
FINALS_DAY = 49
REGIONAL_SPLIT_DAYS = (41, 42)
REGIONAL_SPLIT_EVENT = "Eastern Classic"


@dataclass
class ProcessingResult:
    day: int
    season_uid: str = None
    skipped: bool = False
    reason: str = None
    shows: int = 0
    results: int = 0
    corps_updated: int = 0
    coin_awards: int = 0
    coins_awarded: int = 0
    trophies: int = 0
    mutations: int = 0
    chunks: int = 0
    cached_scores: int = 0
    profile_limit_reached: bool = False
    timings: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PlannedShow:
    show: dict
    attendees: tuple
    round_kind: RoundKind = None


def regional_split(profiles, event_name, week, day):
    """
    Participants scored at a two-day regional on ``day``.

    Everyone who registered any corps for the show that week, sorted by uid and
    split at ceil(n/2). Day 41 takes the first half, day 42 the rest.
    """
    enrollees = sorted(
        profile.uid
        for profile in profiles
        if any(
            event_name in corps.selected_event_names(week)
            for corps in profile.corps.values()
        )
    )
    split_index = math.ceil(len(enrollees) / 2)
    if day == REGIONAL_SPLIT_DAYS[0]:
        return set(enrollees[:split_index])
    return set(enrollees[split_index:])


class DailyScoreProcessor:
    """Scores one season day and persists the outcome as a single batch"""

    def __init__(
        self,
        store=None,
        coordinator=None,
        bracket=None,
        synergy=None,
        rng=None,
        max_workers=8,
        run_timeout=540,
        profile_read_limit=5000,
    ):
        self.store = store or ScoringStore()
        self.coordinator = coordinator or PersistenceCoordinator(self.store)
        self.bracket = bracket or BracketProgressionEngine()
        self.synergy = synergy or SynergyCalculator()
        self.engine = RegressionEngine(HistoricalIndex({}), rng=rng)
        self.max_workers = max_workers
        self.run_timeout = run_timeout
        self.profile_read_limit = profile_read_limit

    @classmethod
    def from_config(cls, config=None, **kwargs):
        """Build a processor from Flask config (the current app's by default)"""
        if config is None:
            config = current_app.config
        store = kwargs.pop("store", None) or ScoringStore()
        kwargs.setdefault(
            "coordinator",
            PersistenceCoordinator(store, batch_size=config.get("SCORING_BATCH_SIZE", 400)),
        )
        kwargs.setdefault(
            "rng", np.random.default_rng(config.get("SCORING_RANDOM_SEED"))
        )
        kwargs.setdefault("max_workers", config.get("SCORING_MAX_WORKERS", 8))
        kwargs.setdefault("run_timeout", config.get("SCORING_RUN_TIMEOUT_SECONDS", 540))
        kwargs.setdefault(
            "profile_read_limit", config.get("SCORING_PROFILE_READ_LIMIT", 5000)
        )
        return cls(store=store, **kwargs)

    def process_day(self, day):
        """
        Score and archive one scored day.

        Missing season or schedule returns a skipped result. Raises
        PersistenceError or RunTimeoutError; the whole day is safe to rerun.
        """
        try:
            season = self.store.get_season()
        except PreconditionNotMet as e:
            logger.info(f"{e}. Nothing to score for day {day}.")
            return ProcessingResult(day=day, skipped=True, reason=str(e))

        with run_context(season.season_uid, day):
            return self._process(season, day)

    def _process(self, season, day):
        result = ProcessingResult(day=day, season_uid=season.season_uid)

        if day < 1 or day > SEASON_LENGTH:
            result.skipped = True
            result.reason = f"Scored day {day} is outside the 1-{SEASON_LENGTH} range"
            logger.info(result.reason)
            return result

        shows = self.store.get_schedule_day(season.season_id, day)
        if not shows:
            result.skipped = True
            result.reason = f"No shows scheduled for day {day}"
            logger.info(result.reason)
            return result

        logger.info(
            f"Processing {season.status} day {day} of {season.season_uid} ({len(shows)} shows)"
        )

        with PerformanceMonitor("load snapshots", metrics=result.timings):
            profiles, limit_reached = self.store.list_active_profiles(
                season.season_id, self.profile_read_limit
            )
            recaps = self.store.get_recaps(season.season_id)
            history = self.store.get_historical_data(self._source_years(season, profiles))

        if limit_reached:
            result.profile_limit_reached = True
            logger.warning(
                f"PROFILE READ LIMIT REACHED: only the first {self.profile_read_limit} "
                f"participants are scored for day {day}"
            )

        self.engine.reset(HistoricalIndex(history))

        plan = self.plan_attendance(day, shows, profiles, recaps)

        with PerformanceMonitor("compute scores", metrics=result.timings):
            scores = self.compute_scores(season, day, plan)

        recap_shows, daily_totals = self.build_recap(plan, scores)
        batch = self.build_mutations(season, day, plan, recap_shows, daily_totals, result)

        with PerformanceMonitor("commit", metrics=result.timings):
            result.chunks = self.coordinator.commit(batch)

        result.shows = len(recap_shows)
        result.results = sum(len(s["results"]) for s in recap_shows)
        result.mutations = len(batch)
        result.cached_scores = len(self.engine.cache)

        invalidate_scoring_cache(f"scoring day {day}")
        logger.info(
            f"Day {day} complete: {result.results} results across {result.shows} shows, "
            f"{result.corps_updated} corps updated, {result.trophies} trophies"
        )
        return result

    @staticmethod
    def _source_years(season, profiles):
        years = {
            entry.source_year
            for profile in profiles
            for corps in profile.corps.values()
            for _, entry in corps.lineup_entries()
        }
        if season.is_live and season.live_year:
            years.add(season.live_year)
        return years

    def plan_attendance(self, day, shows, profiles, recaps):
        """Which corps attend each show of the day"""
        week = week_for_day(day)
        round_config = {}
        if day in CHAMPIONSHIP_DAYS:
            round_config = self.bracket.round_config(day, shows, recaps)

        plan = []
        for show in shows:
            event_name = show["eventName"]
            entry = round_config.get(event_name)

            split = None
            if day in REGIONAL_SPLIT_DAYS and REGIONAL_SPLIT_EVENT in event_name:
                split = regional_split(profiles, event_name, week, day)
                logger.info(
                    f"Day {day}: scoring {len(split)} {REGIONAL_SPLIT_EVENT} enrollees"
                )

            attendees = []
            for profile in profiles:
                if split is not None and profile.uid not in split:
                    continue
                for corps in profile.corps_in_class_order():
                    if not corps.has_lineup:
                        continue
                    if entry is not None:
                        attended = entry.admits(corps.uid, corps.corps_class)
                    else:
                        attended = event_name in corps.selected_event_names(week)
                    if attended:
                        attendees.append(corps)

            plan.append(
                PlannedShow(
                    show=show,
                    attendees=tuple(attendees),
                    round_kind=entry.kind if entry else None,
                )
            )
        return plan

    def compute_scores(self, season, day, plan):
        """ShowScore per (uid, class), computed on a bounded worker pool"""
        unique = {}
        for planned in plan:
            for corps in planned.attendees:
                unique.setdefault(corps.key, corps)
        if not unique:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="scoring"
        )
        futures = {
            executor.submit(self._score_task, season, day, corps): key
            for key, corps in unique.items()
        }
        done, not_done = wait(futures, timeout=self.run_timeout)

        if not_done:
            for future in not_done:
                future.cancel()
            executor.shutdown(wait=False, cancel_futures=True)
            raise RunTimeoutError(
                f"Scoring day {day} exceeded {self.run_timeout}s with "
                f"{len(not_done)} corps unscored; nothing was written"
            )

        executor.shutdown(wait=True)
        return {futures[future]: future.result() for future in done}

    def _score_task(self, season, day, corps):
        bind_run_context(season.season_uid, day)
        return self.score_corps(season, day, corps)

    def score_corps(self, season, day, corps):
        synergy = self.synergy.compute(corps.show_concept, corps.lineup)
        caption_scores = {}
        for caption, entry in corps.lineup_entries():
            if caption not in CAPTIONS:
                continue
            if season.is_live:
                raw = self.engine.live_score(
                    entry.entity_name, entry.source_year, caption, day, season.live_year
                )
            else:
                raw = self.engine.score(entry.entity_name, entry.source_year, caption, day)
            caption_scores[caption] = cap_caption_score(raw, synergy.bonus_for(caption))
        return calculate_show_score(caption_scores)

    @staticmethod
    def build_recap(plan, scores):
        """Recap shows with ranked results, plus each corps's daily total"""
        recap_shows = []
        daily_totals = {}
        for planned in plan:
            results = []
            for corps in planned.attendees:
                score = scores[corps.key]
                results.append(
                    {
                        "uid": corps.uid,
                        "corpsClass": corps.corps_class,
                        "corpsName": corps.corps_name,
                        "totalScore": score.total_score,
                        "geScore": score.ge_score,
                        "visualScore": score.visual_score,
                        "musicScore": score.music_score,
                    }
                )
                daily_totals[corps.key] = daily_totals.get(corps.key, 0) + score.total_score
            results.sort(key=lambda r: (-r["totalScore"], r["uid"], r["corpsClass"]))

            show = {
                "eventName": planned.show["eventName"],
                "location": planned.show.get("location"),
                "results": results,
            }
            if planned.round_kind is not None:
                show["round"] = planned.round_kind.value
            recap_shows.append(show)

        return recap_shows, {k: round(v, 3) for k, v in daily_totals.items()}

    def build_mutations(self, season, day, plan, recap_shows, daily_totals, result):
        batch = MutationBatch()
        corps_by_key = {c.key: c for p in plan for c in p.attendees}

        for key, total in daily_totals.items():
            if total > 0:
                batch.add(CorpsScoreUpdate(corps_by_key[key].corps_id, total, day))
                result.corps_updated += 1

        batch.add(
            RecapPut(season.season_id, day, recap_shows, datetime.now(timezone.utc))
        )

        for award in self.coin_awards(season, day, plan):
            batch.add(award)
            if award.amount > 0:
                result.coin_awards += 1
                result.coins_awarded += award.amount

        awards = self.trophy_awards(day, plan, recap_shows)
        if awards is not None:
            batch.add(TrophyReplace(season.season_id, day, awards))
            result.trophies = len(awards)

        return batch

    @staticmethod
    def coin_awards(season, day, plan):
        """One combined CorpsCoin award per participant for the day"""
        per_user = {}
        for planned in plan:
            for corps in planned.attendees:
                amount = CLASS_COIN_REWARDS.get(corps.corps_class, 0)
                entry = per_user.setdefault(corps.user_id, {"amount": 0, "history": []})
                entry["amount"] += amount
                entry["history"].append(
                    {
                        "eventName": planned.show["eventName"],
                        "corpsClass": corps.corps_class,
                        "amount": amount,
                    }
                )
        return [
            CoinIncrement(user_id, season.season_id, day, data["amount"], data["history"])
            for user_id, data in sorted(per_user.items())
        ]

    @staticmethod
    def trophy_awards(day, plan, recap_shows):
        """
        Canonical award set for a trophy day, or None on other days.

        Regional days give the top three of every show a trophy. Finals day gives
        the World Finals podium championship trophies and every finalist a medal.
        """
        if day not in REGIONAL_TROPHY_DAYS and day != FINALS_DAY:
            return None

        user_ids = {c.uid: c.user_id for p in plan for c in p.attendees}
        awards = []

        def award(result, trophy_type, event_name, rank, metal=None):
            awards.append(
                {
                    "user_id": user_ids[result["uid"]],
                    "trophy_type": trophy_type,
                    "metal": metal,
                    "event_name": event_name,
                    "corps_class": result["corpsClass"],
                    "score": result["totalScore"],
                    "rank": rank,
                }
            )

        if day in REGIONAL_TROPHY_DAYS:
            for show in recap_shows:
                for index, result in enumerate(show["results"][: len(METALS)]):
                    award(result, REGIONAL, show["eventName"], index + 1, METALS[index])

        if day == FINALS_DAY and recap_shows:
            finals = next(
                (
                    s
                    for s in recap_shows
                    if s.get("round") == RoundKind.WORLD_FINALS.value
                ),
                recap_shows[0],
            )
            for index, result in enumerate(finals["results"][: len(METALS)]):
                award(result, CHAMPIONSHIP, finals["eventName"], index + 1, METALS[index])
            for index, result in enumerate(finals["results"]):
                award(result, FINALIST, finals["eventName"], index + 1)

        return awards

"""
Read side of the scoring pipeline

ScoringStore loads everything a run needs up front (season, schedule, profiles,
historical archive, recaps) and hands immutable snapshots to the processor.
Worker threads only ever see these snapshots, never the session.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from fantasy_corps import db
from fantasy_corps.errors import PreconditionNotMet
from fantasy_corps.models import (
    CoinAward,
    Corps,
    DailyRecap,
    HistoricalEvent,
    LeagueMatchup,
    ScheduledShow,
    Season,
    SeasonRecord,
    Trophy,
    User,
)
from fantasy_corps.models.corps import CORPS_CLASSES
from fantasy_corps.models.season import LIVE_SEASON
from fantasy_corps.utils.performance import timer
from fantasy_corps.utils.scoring import parse_lineup_slot

logger = logging.getLogger(__name__)

# Scored days before the championship rounds begin
CHAMPIONSHIP_START_DAY = 45


@dataclass(frozen=True)
class SeasonContext:
    """Season state for one run, passed explicitly into every stage"""

    season_id: int
    season_uid: str
    name: str
    status: str
    schedule_start_date: date
    data_set_id: str = None
    live_year: str = None

    @property
    def is_live(self):
        return self.status == LIVE_SEASON

    @classmethod
    def from_season(cls, season):
        return cls(
            season_id=season.id,
            season_uid=season.season_uid,
            name=season.name,
            status=season.status,
            schedule_start_date=season.schedule_start_date,
            data_set_id=season.data_set_id,
            live_year=str(season.season_year) if season.season_year else None,
        )


@dataclass(frozen=True)
class CorpsSnapshot:
    corps_id: int
    user_id: int
    uid: str
    corps_class: str
    corps_name: str
    lineup: dict
    selected_shows: dict
    show_concept: dict = None

    @property
    def key(self):
        return (self.uid, self.corps_class)

    @property
    def has_lineup(self):
        return any(parse_lineup_slot(v) for v in (self.lineup or {}).values())

    def lineup_entries(self):
        """(caption, LineupEntry) pairs for every filled slot"""
        entries = []
        for caption, value in (self.lineup or {}).items():
            entry = parse_lineup_slot(value)
            if entry is not None:
                entries.append((caption, entry))
        return entries

    def selected_event_names(self, week):
        return {
            s.get("eventName")
            for s in (self.selected_shows or {}).get(f"week{week}", [])
            if isinstance(s, dict)
        }


@dataclass(frozen=True)
class ProfileSnapshot:
    user_id: int
    uid: str
    username: str
    corps: dict = field(default_factory=dict)

    def corps_in_class_order(self):
        return [self.corps[c] for c in CORPS_CLASSES if c in self.corps]


class RecapBook:
    """Daily recaps of one season keyed by scored day.

    Putting a day replaces its entry, so a day can never appear twice.
    """

    def __init__(self, recaps=None):
        self._recaps = {}
        for recap in recaps or []:
            self.put(recap["day"], recap)

    def get(self, day):
        return self._recaps.get(day)

    def put(self, day, recap):
        self._recaps[day] = recap

    def days(self):
        return sorted(self._recaps)

    def results(self, day):
        """Every result of a day across its shows, or [] when missing"""
        recap = self._recaps.get(day)
        if not recap:
            return []
        return [r for show in recap.get("shows", []) for r in show.get("results", [])]

    def best_totals(self, before_day=CHAMPIONSHIP_START_DAY, corps_classes=None):
        """Season standings: best show total per (uid, class) on days before ``before_day``"""
        best = {}
        for day in self.days():
            if day >= before_day:
                continue
            for result in self.results(day):
                if corps_classes and result.get("corpsClass") not in corps_classes:
                    continue
                key = (result.get("uid"), result.get("corpsClass"))
                score = result.get("totalScore", 0) or 0
                if score > best.get(key, float("-inf")):
                    best[key] = score
        return best

    def __len__(self):
        return len(self._recaps)

    def __contains__(self, day):
        return day in self._recaps


class ScoringStore:
    """SQLAlchemy-backed reads and writes used by the scoring services"""

    def __init__(self, session=None):
        self.session = session or db.session

    # Reads

    def get_season(self):
        season = Season.get_current_season()
        if season is None:
            raise PreconditionNotMet("No active season found")
        return SeasonContext.from_season(season)

    def get_schedule_day(self, season_id, day):
        shows = (
            ScheduledShow.query.filter_by(season_id=season_id, day=day)
            .order_by(ScheduledShow.id)
            .all()
        )
        return [show.to_dict() for show in shows]

    @timer
    def get_historical_data(self, source_years):
        """All archived events for a set of source years in one query"""
        years = sorted({str(y) for y in source_years if y})
        history = {year: [] for year in years}
        if not years:
            return history

        events = (
            HistoricalEvent.query.filter(HistoricalEvent.source_year.in_(years))
            .order_by(HistoricalEvent.id)
            .all()
        )
        for event in events:
            history[event.source_year].append(event.to_dict())

        # Years with no events at all are treated as missing
        return {year: events for year, events in history.items() if events}

    @timer
    def list_active_profiles(self, season_id, limit):
        """
        Participants with an active corps in the season, ordered by uid.

        Returns (profiles, limit_reached).
        """
        users = (
            User.query.join(Corps, Corps.user_id == User.id)
            .filter(
                Corps.season_id == season_id,
                Corps.is_retired.is_(False),
                User.is_active.is_(True),
            )
            .distinct()
            .order_by(User.uid)
            .limit(limit)
            .all()
        )
        limit_reached = len(users) >= limit

        user_ids = [u.id for u in users]
        corps_by_user = {}
        if user_ids:
            rows = Corps.query.filter(
                Corps.season_id == season_id,
                Corps.is_retired.is_(False),
                Corps.user_id.in_(user_ids),
            ).all()
            for corps in rows:
                corps_by_user.setdefault(corps.user_id, []).append(corps)

        profiles = []
        for user in users:
            corps = {}
            for row in corps_by_user.get(user.id, []):
                corps[row.corps_class] = CorpsSnapshot(
                    corps_id=row.id,
                    user_id=user.id,
                    uid=user.uid,
                    corps_class=row.corps_class,
                    corps_name=row.corps_name,
                    lineup=dict(row.lineup or {}),
                    selected_shows=dict(row.selected_shows or {}),
                    show_concept=dict(row.show_concept) if row.show_concept else None,
                )
            profiles.append(
                ProfileSnapshot(
                    user_id=user.id, uid=user.uid, username=user.username, corps=corps
                )
            )
        return profiles, limit_reached

    def get_recaps(self, season_id):
        return RecapBook(r.to_dict() for r in DailyRecap.get_for_season(season_id))

    def get_class_scores(self, season_id, corps_class):
        """Latest total_season_score per user id for one class"""
        rows = Corps.query.filter_by(season_id=season_id, corps_class=corps_class).all()
        return {row.user_id: row.total_season_score or 0 for row in rows}

    # Writes, applied by the persistence coordinator

    def put_recap(self, season_id, day, shows, recap_date=None):
        recap = DailyRecap.query.filter_by(season_id=season_id, day=day).first()
        if recap is None:
            recap = DailyRecap(season_id=season_id, day=day)
            self.session.add(recap)
        recap.shows = shows
        if recap_date is not None:
            recap.recap_date = recap_date
        return recap

    def update_corps_score(self, corps_id, total_score, day):
        corps = self.session.get(Corps, corps_id)
        if corps is None:
            logger.warning(f"Corps {corps_id} disappeared before its score was saved")
            return
        corps.total_season_score = total_score
        corps.last_scored_day = day

    def replace_trophies(self, season_id, day, awards):
        Trophy.query.filter_by(season_id=season_id, day=day).delete(
            synchronize_session=False
        )
        for award in awards:
            self.session.add(Trophy(season_id=season_id, day=day, **award))

    def set_coin_award(self, user_id, season_id, day, amount, history):
        """Record the day's combined award and move the balance by the difference"""
        award = CoinAward.query.filter_by(
            user_id=user_id, season_id=season_id, day=day
        ).first()
        previous = award.amount if award else 0
        if award is None:
            if amount == 0:
                return 0
            award = CoinAward(user_id=user_id, season_id=season_id, day=day)
            self.session.add(award)
        award.amount = amount
        award.history = history

        delta = amount - previous
        if delta:
            user = self.session.get(User, user_id)
            user.corps_coin = (user.corps_coin or 0) + delta
        return delta

    def resolve_matchup(self, matchup_id, winner_id, is_tie, scores, resolved_at):
        matchup = self.session.get(LeagueMatchup, matchup_id)
        matchup.winner_id = winner_id
        matchup.is_tie = is_tie
        matchup.completed = True
        matchup.scores = scores
        matchup.resolved_at = resolved_at
        return matchup

    def increment_record(self, user_id, season_id, corps_class, wins=0, losses=0, ties=0):
        record = SeasonRecord.get_or_create(user_id, season_id, corps_class)
        record.wins = (record.wins or 0) + wins
        record.losses = (record.losses or 0) + losses
        record.ties = (record.ties or 0) + ties
        return record

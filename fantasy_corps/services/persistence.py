"""
Batched writes for the scoring pipeline

A run collects every write it wants to make into a MutationBatch. The
PersistenceCoordinator applies the batch in order, committing in chunks of
SCORING_BATCH_SIZE mutations. Any database error rolls the open chunk back and
surfaces as PersistenceError so the caller retries the whole day.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from fantasy_corps.errors import PersistenceError
from fantasy_corps.services.store import ScoringStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 400


@dataclass(frozen=True)
class CorpsScoreUpdate:
    corps_id: int
    total_score: float
    day: int

    def apply(self, store):
        store.update_corps_score(self.corps_id, self.total_score, self.day)


@dataclass(frozen=True)
class RecapPut:
    season_id: int
    day: int
    shows: list
    recap_date: datetime = None

    def apply(self, store):
        store.put_recap(self.season_id, self.day, self.shows, self.recap_date)


@dataclass(frozen=True)
class TrophyReplace:
    """Replace every award of a season day with a canonical set"""

    season_id: int
    day: int
    awards: list

    def apply(self, store):
        store.replace_trophies(self.season_id, self.day, self.awards)


@dataclass(frozen=True)
class CoinIncrement:
    """One participant's CorpsCoin for a day, combined across all shows attended"""

    user_id: int
    season_id: int
    day: int
    amount: int
    history: list

    def apply(self, store):
        store.set_coin_award(
            self.user_id, self.season_id, self.day, self.amount, self.history
        )


@dataclass(frozen=True)
class RecordIncrement:
    user_id: int
    season_id: int
    corps_class: str
    wins: int = 0
    losses: int = 0
    ties: int = 0

    def apply(self, store):
        store.increment_record(
            self.user_id,
            self.season_id,
            self.corps_class,
            wins=self.wins,
            losses=self.losses,
            ties=self.ties,
        )


@dataclass(frozen=True)
class MatchupResolution:
    """A matchup outcome together with the record increments it causes.

    Applied as one unit so the outcome and the records land in the same commit.
    """

    matchup_id: int
    winner_id: int
    is_tie: bool
    scores: dict
    records: tuple = ()

    def apply(self, store):
        store.resolve_matchup(
            self.matchup_id,
            self.winner_id,
            self.is_tie,
            self.scores,
            datetime.now(timezone.utc),
        )
        for record in self.records:
            record.apply(store)


@dataclass
class MutationBatch:
    mutations: list = field(default_factory=list)

    def add(self, mutation):
        self.mutations.append(mutation)
        return mutation

    def extend(self, mutations):
        for mutation in mutations:
            self.add(mutation)

    def count(self, mutation_type):
        return sum(1 for m in self.mutations if isinstance(m, mutation_type))

    def __len__(self):
        return len(self.mutations)

    def __iter__(self):
        return iter(self.mutations)


class PersistenceCoordinator:
    """Applies mutation batches through the store in ordered chunks"""

    def __init__(self, store=None, batch_size=DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store or ScoringStore()
        self.batch_size = batch_size

    def chunks(self, batch):
        mutations = list(batch)
        for start in range(0, len(mutations), self.batch_size):
            yield mutations[start : start + self.batch_size]

    def commit(self, batch):
        """
        Write a batch. Returns the number of chunks committed.

        Raises:
            PersistenceError: a chunk failed; the open chunk was rolled back
        """
        session = self.store.session
        committed = 0

        for chunk in self.chunks(batch):
            try:
                for mutation in chunk:
                    mutation.apply(self.store)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(
                    f"Persistence failed after {committed} committed chunk(s): {e}",
                    exc_info=True,
                )
                raise PersistenceError(
                    f"Failed to commit chunk {committed + 1} of scoring mutations"
                ) from e
            committed += 1
            logger.debug(f"Committed chunk {committed} ({len(chunk)} mutations)")

        logger.info(f"Committed {len(batch)} mutations in {committed} chunk(s)")
        return committed

"""
Tests for chunked batch persistence.
"""

from dataclasses import dataclass

import pytest
from sqlalchemy.exc import SQLAlchemyError

from fantasy_corps.errors import PersistenceError
from fantasy_corps.services.persistence import (
    CoinIncrement,
    MatchupResolution,
    MutationBatch,
    PersistenceCoordinator,
    RecordIncrement,
)


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class FakeStore:
    def __init__(self):
        self.session = FakeSession()
        self.applied = []

    def resolve_matchup(self, matchup_id, winner_id, is_tie, scores, resolved_at):
        self.applied.append(("matchup", matchup_id, winner_id, is_tie))

    def increment_record(self, user_id, season_id, corps_class, wins=0, losses=0, ties=0):
        self.applied.append(("record", user_id, wins, losses, ties))

    def set_coin_award(self, user_id, season_id, day, amount, history):
        self.applied.append(("coin", user_id, amount))


@dataclass(frozen=True)
class Note:
    value: int

    def apply(self, store):
        store.applied.append(self.value)


@dataclass(frozen=True)
class Broken:
    def apply(self, store):
        raise SQLAlchemyError("disk I/O error")


class TestMutationBatch:
    def test_counts_by_type(self):
        batch = MutationBatch()
        batch.extend([Note(1), Note(2), CoinIncrement(1, 1, 3, 200, [])])
        assert len(batch) == 3
        assert batch.count(Note) == 2
        assert batch.count(CoinIncrement) == 1


class TestPersistenceCoordinator:
    """Tests for ordered chunk commits."""

    def test_commits_in_chunks(self):
        store = FakeStore()
        batch = MutationBatch()
        batch.extend(Note(i) for i in range(5))

        chunks = PersistenceCoordinator(store, batch_size=2).commit(batch)

        assert chunks == 3
        assert store.session.commits == 3
        assert store.applied == [0, 1, 2, 3, 4]

    def test_empty_batch(self):
        store = FakeStore()
        assert PersistenceCoordinator(store).commit(MutationBatch()) == 0
        assert store.session.commits == 0

    def test_failed_chunk_rolls_back(self):
        store = FakeStore()
        batch = MutationBatch()
        batch.extend([Note(1), Note(2), Note(3), Broken(), Note(5)])

        with pytest.raises(PersistenceError):
            PersistenceCoordinator(store, batch_size=2).commit(batch)

        assert store.session.commits == 1
        assert store.session.rollbacks == 1
        assert 5 not in store.applied

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            PersistenceCoordinator(FakeStore(), batch_size=0)


class TestMatchupResolution:
    def test_outcome_and_records_applied_together(self):
        store = FakeStore()
        mutation = MatchupResolution(
            7,
            1,
            False,
            {"a": 80.0, "b": 70.0},
            (RecordIncrement(1, 1, "worldClass", wins=1), RecordIncrement(2, 1, "worldClass", losses=1)),
        )

        mutation.apply(store)

        assert store.applied == [
            ("matchup", 7, 1, False),
            ("record", 1, 1, 0, 0),
            ("record", 2, 0, 1, 0),
        ]

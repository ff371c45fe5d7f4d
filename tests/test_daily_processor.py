"""
Tests for the daily scoring pipeline against an in-memory database.
"""

import time

import numpy as np
import pytest

from conftest import flat_captions, lineup_of
from fantasy_corps.errors import RunTimeoutError
from fantasy_corps.models import CoinAward, Corps, DailyRecap, Trophy, User
from fantasy_corps.models.corps import OPEN_CLASS, WORLD_CLASS
from fantasy_corps.models.season import LIVE_SEASON
from fantasy_corps.models.trophy import CHAMPIONSHIP, FINALIST, REGIONAL
from fantasy_corps.services.daily_processor import DailyScoreProcessor, regional_split
from fantasy_corps.services.store import CorpsSnapshot, ProfileSnapshot
from fantasy_corps.utils.synergy import NO_SYNERGY


def schedule(db, season, day, *event_names):
    for name in event_names:
        season.add_show(day, name)
    db.session.commit()


def recap_for(season, day):
    return DailyRecap.query.filter_by(season_id=season.id, day=day).one()


class TestProcessDay:
    """Tests for a regular scoring day."""

    def test_scores_registered_corps(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        user = make_user("u1")
        corps = make_corps(user, season, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        result = processor.process_day(1)

        assert not result.skipped
        assert result.shows == 1
        assert result.results == 1
        show = recap_for(season, 1).shows[0]
        assert show["eventName"] == "Show A"
        assert show["results"][0] == {
            "uid": "u1",
            "corpsClass": WORLD_CLASS,
            "corpsName": corps.corps_name,
            "totalScore": 75.0,
            "geScore": 30.0,
            "visualScore": 22.5,
            "musicScore": 22.5,
        }
        corps = db.session.get(Corps, corps.id)
        assert corps.total_season_score == 75.0
        assert corps.last_scored_day == 1

    def test_unregistered_corps_not_scored(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        make_corps(make_user("u1"), season, shows={1: ["Show A"]})
        make_corps(make_user("u2"), season, shows={1: ["Other Show"]})
        make_corps(make_user("u3"), season, lineup={}, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        processor.process_day(1)

        uids = [r["uid"] for r in recap_for(season, 1).shows[0]["results"]]
        assert uids == ["u1"]

    def test_rerun_is_idempotent(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        user = make_user("u1")
        make_corps(user, season, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        processor.process_day(1)
        processor.process_day(1)

        assert DailyRecap.query.filter_by(season_id=season.id).count() == 1
        assert CoinAward.query.filter_by(user_id=user.id).count() == 1
        assert db.session.get(User, user.id).corps_coin == 200

    def test_season_score_is_latest_daily_total(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        corps = make_corps(make_user("u1"), season, shows={1: ["Show A", "Show B"]})
        add_history(2014, "Early Show", 1, {"Blue Devils": flat_captions(15.0)})
        add_history(2014, "Later Show", 2, {"Blue Devils": flat_captions(10.0)})
        schedule(db, season, 1, "Show A")
        schedule(db, season, 2, "Show B")

        processor.process_day(1)
        processor.process_day(2)

        corps = db.session.get(Corps, corps.id)
        assert corps.total_season_score == 50.0
        assert corps.last_scored_day == 2

    def test_show_concept_synergy_applied(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        concept = {"theme": "rock", "musicSource": "popular", "drillStyle": "angular"}
        make_corps(make_user("u1"), season, shows={1: ["Show A"]}, show_concept=concept)
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        processor.process_day(1)

        score = recap_for(season, 1).shows[0]["results"][0]
        assert score["geScore"] == pytest.approx(2 * 15.667)
        assert score["totalScore"] > 75.0

    def test_results_sorted_by_total(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        make_corps(make_user("u1"), season, lineup=lineup_of("Cadets"), shows={1: ["Show A"]})
        make_corps(make_user("u2"), season, lineup=lineup_of("Crown"), shows={1: ["Show A"]})
        add_history(
            2014,
            "Archive Show",
            1,
            {"Cadets": flat_captions(12.0), "Crown": flat_captions(16.0)},
        )
        schedule(db, season, 1, "Show A")

        processor.process_day(1)

        results = recap_for(season, 1).shows[0]["results"]
        assert [r["uid"] for r in results] == ["u2", "u1"]

    def test_same_seed_same_scores_across_workers(self, db, make_season, make_user, make_corps, add_history):
        season = make_season()
        entities = [f"Corps {n}" for n in range(12)]
        for n, entity in enumerate(entities):
            make_corps(make_user(f"u{n:02d}"), season, lineup=lineup_of(entity), shows={5: ["Show A"]})
        add_history(2014, "Early Show", 5, {e: flat_captions(12.0) for e in entities})
        add_history(2014, "Later Show", 20, {e: flat_captions(14.0) for e in entities})
        schedule(db, season, 30, "Show A")

        runs = []
        for _ in range(3):
            processor = DailyScoreProcessor.from_config(
                rng=np.random.default_rng(42), max_workers=8
            )
            processor.process_day(30)
            runs.append([dict(r) for r in recap_for(season, 30).shows[0]["results"]])

        assert len(runs[0]) == len(entities)
        assert runs[1] == runs[0]
        assert runs[2] == runs[0]

    def test_profile_read_limit(self, db, make_season, make_user, make_corps, add_history):
        season = make_season()
        for uid in ("u1", "u2", "u3"):
            make_corps(make_user(uid), season, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        processor = DailyScoreProcessor.from_config(
            rng=np.random.default_rng(1), profile_read_limit=2
        )
        result = processor.process_day(1)

        assert result.profile_limit_reached
        uids = [r["uid"] for r in recap_for(season, 1).shows[0]["results"]]
        assert sorted(uids) == ["u1", "u2"]


class TestSkippedRuns:
    """Missing preconditions are a clean no-op."""

    def test_no_active_season(self, processor):
        result = processor.process_day(1)
        assert result.skipped
        assert "No active season" in result.reason

    def test_no_shows_scheduled(self, processor, make_season):
        make_season()
        result = processor.process_day(5)
        assert result.skipped
        assert DailyRecap.query.count() == 0

    @pytest.mark.parametrize("day", [0, 50])
    def test_day_out_of_range(self, processor, make_season, day):
        make_season()
        assert processor.process_day(day).skipped


class TestCorpsCoin:
    def test_one_award_per_participant_across_classes(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        user = make_user("u1")
        make_corps(user, season, WORLD_CLASS, shows={1: ["Show A"]})
        make_corps(user, season, OPEN_CLASS, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 3, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 3, "Show A")

        result = processor.process_day(3)

        award = CoinAward.query.filter_by(user_id=user.id, day=3).one()
        assert award.amount == 300
        assert len(award.history) == 2
        assert result.coins_awarded == 300
        assert db.session.get(User, user.id).corps_coin == 300


class TestRegionalSplit:
    """The two-day Eastern Classic scores each participant once."""

    def _profile(self, uid, event_name="DCI Eastern Classic", corps_class=WORLD_CLASS):
        corps = CorpsSnapshot(
            corps_id=1,
            user_id=1,
            uid=uid,
            corps_class=corps_class,
            corps_name=uid,
            lineup=lineup_of(),
            selected_shows={"week6": [{"eventName": event_name}]},
        )
        return ProfileSnapshot(user_id=1, uid=uid, username=uid, corps={corps_class: corps})

    def test_split_halves_by_uid(self):
        profiles = [self._profile(uid) for uid in ("c", "a", "d", "b", "e")]
        first = regional_split(profiles, "DCI Eastern Classic", 6, 41)
        second = regional_split(profiles, "DCI Eastern Classic", 6, 42)
        assert first == {"a", "b", "c"}
        assert second == {"d", "e"}

    def test_any_class_counts_as_enrolled(self):
        profiles = [self._profile("a", corps_class=OPEN_CLASS), self._profile("b")]
        assert regional_split(profiles, "DCI Eastern Classic", 6, 41) == {"a"}

    def test_non_enrollees_excluded(self):
        profiles = [self._profile("a"), self._profile("b", event_name="Elsewhere")]
        assert regional_split(profiles, "DCI Eastern Classic", 6, 42) == set()

    def test_pipeline_scores_each_half_once(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        for uid in ("u1", "u2", "u3", "u4"):
            make_corps(make_user(uid), season, shows={6: ["DCI Eastern Classic"]})
        add_history(2014, "Archive Show", 41, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 41, "DCI Eastern Classic")
        schedule(db, season, 42, "DCI Eastern Classic")

        processor.process_day(41)
        processor.process_day(42)

        day_41 = {r["uid"] for r in recap_for(season, 41).shows[0]["results"]}
        day_42 = {r["uid"] for r in recap_for(season, 42).shows[0]["results"]}
        assert day_41 == {"u1", "u2"}
        assert day_42 == {"u3", "u4"}


class TestTrophies:
    def _three_corps_show(self, db, season, make_user, make_corps, add_history, day):
        week = (day + 6) // 7
        scores = {"Cadets": 12.0, "Crown": 16.0, "Cavaliers": 14.0, "Scouts": 10.0}
        for index, entity in enumerate(scores):
            make_corps(
                make_user(f"u{index + 1}"),
                season,
                lineup=lineup_of(entity),
                shows={week: ["Regional"]},
            )
        add_history(
            2014,
            "Archive Show",
            day,
            {entity: flat_captions(value) for entity, value in scores.items()},
        )
        schedule(db, season, day, "Regional")

    def test_regional_podium(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        self._three_corps_show(db, season, make_user, make_corps, add_history, 28)

        processor.process_day(28)

        trophies = Trophy.get_awards_for_day(season.id, 28)
        assert [(t.user.uid, t.metal, t.trophy_type) for t in trophies] == [
            ("u2", "gold", REGIONAL),
            ("u3", "silver", REGIONAL),
            ("u1", "bronze", REGIONAL),
        ]

    def test_rerun_does_not_duplicate_trophies(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        self._three_corps_show(db, season, make_user, make_corps, add_history, 28)

        processor.process_day(28)
        processor.process_day(28)

        assert Trophy.query.filter_by(season_id=season.id, day=28).count() == 3

    def test_no_trophies_on_regular_days(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        self._three_corps_show(db, season, make_user, make_corps, add_history, 27)

        result = processor.process_day(27)

        assert result.trophies == 0
        assert Trophy.query.count() == 0

    def test_finals_day_awards(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season()
        scores = {"Cadets": 12.0, "Crown": 16.0, "Cavaliers": 14.0}
        for index, entity in enumerate(scores):
            make_corps(make_user(f"u{index + 1}"), season, lineup=lineup_of(entity))
        make_corps(make_user("u4"), season, lineup=lineup_of("Scouts"))
        add_history(
            2014,
            "Archive Show",
            49,
            {entity: flat_captions(value) for entity, value in scores.items()},
        )
        db.session.add(
            DailyRecap(
                season_id=season.id,
                day=48,
                shows=[
                    {
                        "eventName": "DCI World Championship Semifinals",
                        "results": [
                            {"uid": uid, "corpsClass": WORLD_CLASS, "totalScore": 80.0}
                            for uid in ("u1", "u2", "u3")
                        ],
                    }
                ],
            )
        )
        schedule(db, season, 49, "DCI World Championship Finals")

        processor.process_day(49)

        show = recap_for(season, 49).shows[0]
        assert show["round"] == "world_finals"
        assert [r["uid"] for r in show["results"]] == ["u2", "u3", "u1"]

        trophies = Trophy.get_awards_for_day(season.id, 49)
        champions = [t for t in trophies if t.trophy_type == CHAMPIONSHIP]
        finalists = [t for t in trophies if t.trophy_type == FINALIST]
        assert [(t.user.uid, t.metal) for t in champions] == [
            ("u2", "gold"),
            ("u3", "silver"),
            ("u1", "bronze"),
        ]
        assert len(finalists) == 3
        assert all(t.metal is None for t in finalists)


class TestLiveSeason:
    def test_current_year_scores_used(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season(status=LIVE_SEASON, year=2025)
        make_corps(make_user("u1"), season, shows={2: ["Show A"]})
        add_history(2014, "Archive Show", 10, {"Blue Devils": flat_captions(15.0)})
        add_history(2025, "This Year", 10, {"Blue Devils": flat_captions(18.0)})
        schedule(db, season, 10, "Show A")

        processor.process_day(10)

        assert recap_for(season, 10).shows[0]["results"][0]["totalScore"] == 90.0

    def test_source_year_used_without_current_scores(self, db, processor, make_season, make_user, make_corps, add_history):
        season = make_season(status=LIVE_SEASON, year=2025)
        make_corps(make_user("u1"), season, shows={2: ["Show A"]})
        add_history(2014, "Archive Show", 10, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 10, "Show A")

        processor.process_day(10)

        assert recap_for(season, 10).shows[0]["results"][0]["totalScore"] == 75.0


class SlowSynergy:
    def compute(self, show_concept, lineup):
        time.sleep(1.0)
        return NO_SYNERGY


class TestRunTimeout:
    def test_timeout_writes_nothing(self, db, make_season, make_user, make_corps, add_history):
        season = make_season()
        make_corps(make_user("u1"), season, shows={1: ["Show A"]})
        add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
        schedule(db, season, 1, "Show A")

        processor = DailyScoreProcessor.from_config(synergy=SlowSynergy(), run_timeout=0.05)
        with pytest.raises(RunTimeoutError):
            processor.process_day(1)

        assert DailyRecap.query.count() == 0
        assert CoinAward.query.count() == 0

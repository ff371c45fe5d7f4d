"""
Tests for the read API and the scoring scheduler.
"""

from datetime import timedelta

from conftest import flat_captions
from fantasy_corps.models import DailyRecap
from fantasy_corps.models.corps import OPEN_CLASS, WORLD_CLASS
from fantasy_corps.services.scheduler_service import SchedulerService, run_scoring_day
from fantasy_corps.utils.timezone_utils import get_scoring_date


def scored_season(db, make_season, make_user, make_corps, add_history):
    season = make_season()
    make_corps(make_user("u1"), season, shows={1: ["Show A"]})
    add_history(2014, "Archive Show", 1, {"Blue Devils": flat_captions(15.0)})
    season.add_show(1, "Show A")
    db.session.commit()
    return season


class TestSeasonRoutes:
    def test_no_current_season(self, client):
        response = client.get("/api/seasons/current")
        assert response.status_code == 404

    def test_current_season(self, client, make_season):
        make_season(uid="finale_2025")
        response = client.get("/api/seasons/current")
        assert response.status_code == 200
        assert response.get_json()["season_uid"] == "finale_2025"

    def test_recaps(self, db, client, make_season, make_user, make_corps, add_history):
        scored_season(db, make_season, make_user, make_corps, add_history)
        run_scoring_day(1)

        data = client.get("/api/seasons/season_1/recaps").get_json()
        assert len(data["recaps"]) == 1
        assert data["recaps"][0]["day"] == 1

        day = client.get("/api/seasons/season_1/recaps/1").get_json()
        assert day["shows"][0]["results"][0]["uid"] == "u1"
        assert day["awards"] == []

    def test_missing_recap_day(self, client, make_season):
        make_season()
        assert client.get("/api/seasons/season_1/recaps/9").status_code == 404

    def test_unknown_season(self, client):
        assert client.get("/api/seasons/nope/recaps").status_code == 404


class TestParticipantProfile:
    def test_profile_after_scoring(self, db, client, make_season, make_user, make_corps, add_history):
        scored_season(db, make_season, make_user, make_corps, add_history)
        run_scoring_day(1)

        data = client.get("/api/seasons/season_1/participants/u1").get_json()
        assert data["corps_coin"] == 200
        assert data["corps"][0]["total_season_score"] == 75.0
        assert data["coin_awards"] == [
            {
                "day": 1,
                "amount": 200,
                "history": [{"eventName": "Show A", "corpsClass": WORLD_CLASS, "amount": 200}],
            }
        ]
        assert data["trophies"] == []
        assert data["records"] == {}

    def test_unknown_participant(self, client, make_season):
        make_season()
        assert client.get("/api/seasons/season_1/participants/nobody").status_code == 404


class TestStandings:
    def test_best_score_per_class(self, db, client, make_season):
        season = make_season()
        for day, score in ((10, 70.0), (20, 82.5), (46, 95.0)):
            db.session.add(
                DailyRecap(
                    season_id=season.id,
                    day=day,
                    shows=[
                        {
                            "eventName": f"Show {day}",
                            "results": [
                                {"uid": "u1", "corpsClass": WORLD_CLASS, "totalScore": score},
                                {"uid": "u2", "corpsClass": OPEN_CLASS, "totalScore": 60.0},
                            ],
                        }
                    ],
                )
            )
        db.session.commit()

        data = client.get("/api/seasons/season_1/standings").get_json()
        assert data["standings"][WORLD_CLASS] == [{"rank": 1, "uid": "u1", "bestScore": 82.5}]
        assert data["standings"][OPEN_CLASS][0]["bestScore"] == 60.0

        data = client.get(f"/api/seasons/season_1/standings?class={OPEN_CLASS}").get_json()
        assert list(data["standings"]) == [OPEN_CLASS]

    def test_unknown_class(self, client, make_season):
        make_season()
        response = client.get("/api/seasons/season_1/standings?class=drumline")
        assert response.status_code == 400


class TestSchedulerService:
    """Tests for manual runs through the scheduler."""

    def test_run_day_records_stats(self, db, make_season, make_user, make_corps, add_history):
        scored_season(db, make_season, make_user, make_corps, add_history)
        service = SchedulerService()

        result = service.run_day(1)

        assert result["processing"]["results"] == 1
        assert result["resolution"]["skipped"]
        status = service.get_status()
        assert not status["is_running"]
        assert status["stats"]["successful_runs"] == 1
        assert status["stats"]["last_scored_day"] == 1

    def test_skipped_run_counted(self, app):
        service = SchedulerService()
        service.run_day(3)
        assert service.run_stats["skipped_runs"] == 1

    def test_force_run_without_season(self, app):
        service = SchedulerService()
        assert service.force_run() is None
        assert service.run_stats["skipped_runs"] == 1

    def test_force_run_scores_yesterday(self, make_season):
        make_season(start=get_scoring_date() - timedelta(days=6))
        service = SchedulerService()

        result = service.force_run()

        assert result["processing"]["day"] == 7
        assert result["resolution"]["week"] == 1
        assert service.run_stats["last_scored_day"] == 7

    def test_force_run_without_resolution(self, make_season):
        make_season(start=get_scoring_date() - timedelta(days=6))
        result = SchedulerService().force_run(resolve=False)
        assert result["resolution"] is None

    def test_overlapping_run_refused(self, app):
        service = SchedulerService()
        service._run_lock.acquire()
        try:
            assert service.run_day(1) is None
        finally:
            service._run_lock.release()
        assert service.run_stats["total_runs"] == 0

    def test_status_route(self, client):
        data = client.get("/api/scheduler/status").get_json()
        assert "stats" in data
        assert data["cache"]["type"] == "NullCache"

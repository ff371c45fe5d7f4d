"""
Tests for season calendar helpers.
"""

from datetime import date, datetime, timezone

from fantasy_corps.models import Season
from fantasy_corps.models.season import LIVE_SEASON
from fantasy_corps.utils.timezone_utils import (
    day_index_for_date,
    finals_date,
    get_scoring_date,
)


class TestFinalsDate:
    def test_second_saturday_of_august(self):
        assert finals_date(2014) == date(2014, 8, 9)
        assert finals_date(2015) == date(2015, 8, 8)


class TestDayIndexForDate:
    def test_season_window(self):
        assert day_index_for_date(date(2014, 6, 22)) == 1
        assert day_index_for_date(date(2014, 8, 9)) == 49
        assert day_index_for_date(date(2014, 7, 19), 2014) == 28

    def test_outside_window(self):
        assert day_index_for_date(date(2014, 6, 21)) is None
        assert day_index_for_date(date(2014, 8, 10)) is None
        assert day_index_for_date(None) is None


class TestScoringDate:
    def test_scores_yesterday_in_scoring_timezone(self):
        # 06:30 UTC is 02:30 in New York
        now = datetime(2025, 7, 10, 6, 30, tzinfo=timezone.utc)
        assert get_scoring_date(now) == date(2025, 7, 9)

    def test_late_utc_evening_is_still_local_evening(self):
        now = datetime(2025, 7, 10, 2, 0, tzinfo=timezone.utc)
        assert get_scoring_date(now) == date(2025, 7, 8)


class TestScoredDay:
    def test_off_season_counts_from_start(self):
        season = Season(season_uid="s", name="s", schedule_start_date=date(2025, 6, 1))
        assert season.scored_day_for(date(2025, 6, 1)) == 1
        assert season.scored_day_for(date(2025, 7, 19)) == 49

    def test_live_season_skips_spring_training(self):
        season = Season(
            season_uid="s", name="s", status=LIVE_SEASON, schedule_start_date=date(2025, 6, 1)
        )
        assert season.scored_day_for(date(2025, 6, 1)) == -20
        assert season.scored_day_for(date(2025, 6, 22)) == 1

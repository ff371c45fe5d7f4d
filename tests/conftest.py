"""
Shared fixtures: an application on an in-memory database plus small model factories.
"""

from datetime import date

import numpy as np
import pytest

from fantasy_corps import create_app
from fantasy_corps import db as _db
from fantasy_corps.models import (
    Corps,
    HistoricalEvent,
    HistoricalScore,
    League,
    LeagueMatchup,
    Season,
    User,
)
from fantasy_corps.models.corps import WORLD_CLASS
from fantasy_corps.models.season import OFF_SEASON
from fantasy_corps.services.daily_processor import DailyScoreProcessor
from fantasy_corps.utils.scoring import CAPTIONS


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


def lineup_of(entity="Blue Devils", year="2014", cost=20):
    """A full 8-caption lineup drawing every caption from one entity"""
    return {caption: f"{entity}|{cost}|{year}" for caption in CAPTIONS}


def flat_captions(value):
    return {caption: value for caption in CAPTIONS}


@pytest.fixture
def make_season(db):
    def _make(uid="season_1", status=OFF_SEASON, start=date(2025, 6, 1), year=None, active=True):
        season = Season.create_season(uid, start, status=status, season_year=year)
        db.session.commit()
        if active:
            season.activate()
        return season

    return _make


@pytest.fixture
def make_user(db):
    def _make(uid, username=None):
        user = User(uid=uid, username=username or uid)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_corps(db):
    def _make(
        user,
        season,
        corps_class=WORLD_CLASS,
        lineup=None,
        shows=None,
        show_concept=None,
        name=None,
        total=0.0,
    ):
        """``shows`` maps a week number to the event names registered for it"""
        corps = Corps(
            user_id=user.id,
            season_id=season.id,
            corps_class=corps_class,
            corps_name=name or f"{user.uid} {corps_class}",
            lineup=lineup if lineup is not None else lineup_of(),
            show_concept=show_concept,
            total_season_score=total,
        )
        for week, names in (shows or {}).items():
            for event_name in names:
                corps.select_show(week, event_name)
        db.session.add(corps)
        db.session.commit()
        return corps

    return _make


@pytest.fixture
def add_history(db):
    def _add(year, event_name, day, scores, event_date=None):
        """``scores`` maps entity name to its caption scores"""
        event = HistoricalEvent(
            source_year=str(year),
            event_name=event_name,
            event_date=event_date,
            day_index=day,
        )
        for entity, captions in scores.items():
            event.scores.append(HistoricalScore(entity_name=entity, captions=captions))
        db.session.add(event)
        db.session.commit()
        return event

    return _add


@pytest.fixture
def make_league(db):
    def _make(creator, season, members=()):
        league = League(name="Test League", creator_id=creator.id, season_id=season.id)
        db.session.add(league)
        db.session.commit()
        for member in members:
            league.add_member(member)
        db.session.commit()
        return league

    return _make


@pytest.fixture
def make_matchup(db):
    def _make(league, season, week, a, b=None, corps_class=WORLD_CLASS, **kwargs):
        matchup = LeagueMatchup(
            league_id=league.id,
            season_id=season.id,
            week=week,
            corps_class=corps_class,
            participant_a_id=a.id,
            participant_b_id=b.id if b else None,
            **kwargs,
        )
        db.session.add(matchup)
        db.session.commit()
        return matchup

    return _make


@pytest.fixture
def processor(app):
    return DailyScoreProcessor.from_config(rng=np.random.default_rng(7))

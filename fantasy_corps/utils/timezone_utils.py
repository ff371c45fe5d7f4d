"""
Timezone and season calendar helpers
"""

from datetime import date, datetime, timedelta

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "America/New_York"
SEASON_DAYS = 49
SATURDAY = 5


def get_scoring_timezone():
    """Get the timezone the daily scoring run is scheduled in"""
    timezone_name = DEFAULT_TIMEZONE
    if has_app_context():
        timezone_name = current_app.config.get("SCORING_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_current_time():
    """Get current time in the scoring timezone"""
    return datetime.now(get_scoring_timezone())


def get_scoring_date(now=None):
    """The calendar date a run started at ``now`` scores: the day before, locally"""
    if now is None:
        now = get_current_time()
    elif now.tzinfo is None:
        now = pytz.UTC.localize(now).astimezone(get_scoring_timezone())
    else:
        now = now.astimezone(get_scoring_timezone())
    return now.date() - timedelta(days=1)


def finals_date(year):
    """Championship finals for a source year: the second Saturday of August"""
    first = date(int(year), 8, 1)
    first_saturday = first + timedelta(days=(SATURDAY - first.weekday()) % 7)
    return first_saturday + timedelta(days=7)


def day_index_for_date(event_date, year=None):
    """
    Scored day (1-49) an event date falls on within its year's season.

    The season ends on finals day and starts 48 days earlier. Dates outside
    that window (pre-season events) return None.
    """
    if event_date is None:
        return None
    if isinstance(event_date, datetime):
        event_date = event_date.date()
    finals = finals_date(year or event_date.year)
    season_start = finals - timedelta(days=SEASON_DAYS - 1)
    if event_date < season_start or event_date > finals:
        return None
    return (event_date - season_start).days + 1

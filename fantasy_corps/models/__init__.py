from fantasy_corps import db  # noqa: F401 - imported for model imports

from .coin import CoinAward
from .corps import Corps
from .historical import HistoricalEvent, HistoricalScore
from .league import League, LeagueMatchup, SeasonRecord
from .league_member import LeagueMember
from .recap import DailyRecap
from .season import ScheduledShow, Season
from .trophy import Trophy
from .user import User

__all__ = [
    "User",
    "Season",
    "ScheduledShow",
    "Corps",
    "HistoricalEvent",
    "HistoricalScore",
    "DailyRecap",
    "Trophy",
    "CoinAward",
    "League",
    "LeagueMember",
    "LeagueMatchup",
    "SeasonRecord",
]

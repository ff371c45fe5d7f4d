"""
Championship bracket progression for scored days 45-49

Each championship show is classified into a RoundKind once. A round's rule
says which classes it is open to, which earlier day feeds it, how many advance
(ties at the cutoff always advance) and what happens when the feeder day has no
results.
"""

import enum
import logging
import re
from dataclasses import dataclass

from fantasy_corps.models.corps import A_CLASS, OPEN_CLASS, SOUNDSPORT, WORLD_CLASS

logger = logging.getLogger(__name__)

CHAMPIONSHIP_DAYS = range(45, 50)


class RoundKind(enum.Enum):
    OPEN_A_PRELIMS = "open_a_prelims"
    OPEN_A_FINALS = "open_a_finals"
    WORLD_PRELIMS = "world_prelims"
    WORLD_SEMIS = "world_semis"
    WORLD_FINALS = "world_finals"
    SOUNDSPORT_FESTIVAL = "soundsport_festival"


class Fallback(enum.Enum):
    NONE = "none"
    # Everyone eligible for the round attends
    AUTO_ENROLL = "auto_enroll"
    # Season standings top N, then everyone eligible
    STANDINGS = "standings"


@dataclass(frozen=True)
class RoundRule:
    kind: RoundKind
    day: int
    class_filter: frozenset
    # Whole-word patterns; a show name must match every one
    name_patterns: tuple
    source_day: int = None
    # ((classes, n), ...) applied to the source day's results
    cutoffs: tuple = ()
    fallback: Fallback = Fallback.NONE


def _words(*alternatives):
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)


PRELIMS = _words("prelims?", "preliminaries")
SEMIS = _words("semi-?finals?", "semis")
FINALS = _words("finals?")
OPEN_A_NAME = _words("open", "a class", "class a")
WORLD_NAME = _words("world championships?")
SOUNDSPORT_NAME = _words("soundsport")

OPEN_A = frozenset({OPEN_CLASS, A_CLASS})
WORLD_OPEN_A = frozenset({WORLD_CLASS, OPEN_CLASS, A_CLASS})

ROUND_RULES = {
    RoundKind.OPEN_A_PRELIMS: RoundRule(
        RoundKind.OPEN_A_PRELIMS, 45, OPEN_A, (PRELIMS, OPEN_A_NAME)
    ),
    RoundKind.OPEN_A_FINALS: RoundRule(
        RoundKind.OPEN_A_FINALS,
        46,
        OPEN_A,
        (FINALS, OPEN_A_NAME),
        source_day=45,
        cutoffs=((frozenset({OPEN_CLASS}), 8), (frozenset({A_CLASS}), 4)),
        fallback=Fallback.AUTO_ENROLL,
    ),
    RoundKind.WORLD_PRELIMS: RoundRule(
        RoundKind.WORLD_PRELIMS, 47, WORLD_OPEN_A, (PRELIMS, WORLD_NAME)
    ),
    RoundKind.WORLD_SEMIS: RoundRule(
        RoundKind.WORLD_SEMIS,
        48,
        WORLD_OPEN_A,
        (SEMIS, WORLD_NAME),
        source_day=47,
        cutoffs=((WORLD_OPEN_A, 25),),
        fallback=Fallback.STANDINGS,
    ),
    RoundKind.WORLD_FINALS: RoundRule(
        RoundKind.WORLD_FINALS,
        49,
        WORLD_OPEN_A,
        (FINALS, WORLD_NAME),
        source_day=48,
        cutoffs=((WORLD_OPEN_A, 12),),
        fallback=Fallback.STANDINGS,
    ),
    RoundKind.SOUNDSPORT_FESTIVAL: RoundRule(
        RoundKind.SOUNDSPORT_FESTIVAL,
        49,
        frozenset({SOUNDSPORT}),
        (SOUNDSPORT_NAME,),
    ),
}

# Checked in order; the festival shares finals day with World Finals
_CLASSIFY_ORDER = [
    RoundKind.SOUNDSPORT_FESTIVAL,
    RoundKind.OPEN_A_PRELIMS,
    RoundKind.OPEN_A_FINALS,
    RoundKind.WORLD_PRELIMS,
    RoundKind.WORLD_SEMIS,
    RoundKind.WORLD_FINALS,
]


def classify_show(event_name, day):
    """RoundKind of a championship-day show, or None for a regular show"""
    if day not in CHAMPIONSHIP_DAYS or not event_name:
        return None
    for kind in _CLASSIFY_ORDER:
        rule = ROUND_RULES[kind]
        if rule.day == day and all(p.search(event_name) for p in rule.name_patterns):
            return kind
    return None


def tie_inclusive_cutoff(ranked, n):
    """
    Top ``n`` entries of (key, score) pairs, plus anyone tied with the nth score.

    Fewer than ``n`` entries all advance.
    """
    ordered = sorted(ranked, key=lambda item: item[1], reverse=True)
    if len(ordered) <= n:
        return [key for key, _ in ordered]
    threshold = ordered[n - 1][1]
    return [key for key, score in ordered if score >= threshold]


@dataclass(frozen=True)
class RoundEntry:
    """Eligibility for one championship show.

    ``participants`` of None admits every corps in ``class_filter`` with a lineup.
    """

    kind: RoundKind
    class_filter: frozenset
    participants: frozenset = None
    source: str = "open"

    def admits(self, uid, corps_class):
        if corps_class not in self.class_filter:
            return False
        return self.participants is None or (uid, corps_class) in self.participants


class BracketProgressionEngine:
    """Builds the round config for a championship day from earlier recaps"""

    def round_config(self, day, shows, recaps):
        """
        Map each classified show name on ``day`` to its RoundEntry.

        Shows that are not championship rounds are left out and fall back to
        manual registration.
        """
        config = {}
        if day not in CHAMPIONSHIP_DAYS:
            return config

        for show in shows:
            kind = classify_show(show.get("eventName"), day)
            if kind is None:
                logger.info(
                    f"Show '{show.get('eventName')}' on day {day} is not a championship round"
                )
                continue
            config[show["eventName"]] = self.entry_for(ROUND_RULES[kind], recaps)
        return config

    def entry_for(self, rule, recaps):
        if rule.source_day is None:
            return RoundEntry(rule.kind, rule.class_filter)

        results = recaps.results(rule.source_day)
        if results:
            advancing = self._advance(rule, results)
            logger.info(
                f"{len(advancing)} corps advance from day {rule.source_day} to {rule.kind.value}"
            )
            return RoundEntry(
                rule.kind, rule.class_filter, frozenset(advancing), source="advancement"
            )

        logger.warning(
            f"No results for day {rule.source_day}; using {rule.fallback.value} fallback "
            f"for {rule.kind.value}"
        )
        if rule.fallback is Fallback.STANDINGS:
            standings = recaps.best_totals(corps_classes=rule.class_filter)
            if standings:
                n = sum(count for _, count in rule.cutoffs)
                advancing = tie_inclusive_cutoff(standings.items(), n)
                logger.info(
                    f"{len(advancing)} corps enter {rule.kind.value} from season standings"
                )
                return RoundEntry(
                    rule.kind,
                    rule.class_filter,
                    frozenset(advancing),
                    source="standings",
                )

        return RoundEntry(rule.kind, rule.class_filter, source="auto_enroll")

    def _advance(self, rule, results):
        best = {}
        for r in results:
            key = (r.get("uid"), r.get("corpsClass"))
            best[key] = max(best.get(key, 0), r.get("totalScore", 0) or 0)

        advancing = []
        for classes, n in rule.cutoffs:
            ranked = [(key, score) for key, score in best.items() if key[1] in classes]
            advancing.extend(tie_inclusive_cutoff(ranked, n))
        return advancing

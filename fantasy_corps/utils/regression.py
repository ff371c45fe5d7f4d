"""
Caption score derivation from the historical archive

Exact recorded scores are always preferred. Days without a recorded score are
estimated with a log-linear least squares fit over the entity's other recorded
days in the same source year, plus a small random jitter.
"""

import logging
import threading
import zlib
from collections import defaultdict

import numpy as np

from fantasy_corps.utils.scoring import CAPTIONS, MAX_CAPTION_SCORE, parse_caption_score

logger = logging.getLogger(__name__)

JITTER = 0.25
# Current-year observations needed before a live season trusts its own trend
LIVE_MIN_OBSERVATIONS = 3

HISTORICAL = "historical"
LIVE = "live"


class HistoricalIndex:
    """
    Per (source year, entity, caption) observation lists built once per run.

    ``history`` maps a source year to its events, each a dict with ``dayIndex``
    and ``scores`` ([{"corps": name, "captions": {...}}]). Event order is
    preserved so the first recorded score for a day wins.
    """

    def __init__(self, history):
        self._years = set()
        self._entries = defaultdict(list)
        for year, events in (history or {}).items():
            year = str(year)
            self._years.add(year)
            for event in events:
                day = event.get("dayIndex")
                for row in event.get("scores", []):
                    entity = row.get("corps")
                    captions = row.get("captions") or {}
                    for caption, value in captions.items():
                        score = parse_caption_score(value)
                        if score:
                            self._entries[(year, entity, caption)].append((day, score))

    def has_year(self, source_year):
        return str(source_year) in self._years

    def exact_score(self, entity, source_year, caption, day):
        """First recorded score above zero for the day, or None"""
        for entry_day, score in self._entries.get((str(source_year), entity, caption), ()):
            if entry_day == day:
                return score
        return None

    def observations(self, entity, source_year, caption):
        """Distinct-day (day, score) pairs, first score per day"""
        seen = set()
        points = []
        for day, score in self._entries.get((str(source_year), entity, caption), ()):
            if day is None or day in seen:
                continue
            seen.add(day)
            points.append((day, score))
        return points

    def all_scores(self, entity, source_year, caption):
        """Every recorded score, pre-season events included"""
        return [score for _, score in self._entries.get((str(source_year), entity, caption), ())]


def fit_log_linear(observations):
    """
    Ordinary least squares fit of ln(score) against day.

    Returns the (slope, intercept) of ``ln(y) = m * day + c``.
    """
    days = np.array([day for day, _ in observations], dtype=float)
    log_scores = np.log(np.array([score for _, score in observations], dtype=float))
    slope, intercept = np.polyfit(days, log_scores, 1)
    return float(slope), float(intercept)


def predict_log_linear(observations, day):
    """Predicted score for ``day`` before jitter and clamping"""
    slope, intercept = fit_log_linear(observations)
    return float(np.exp(slope * day + intercept))


class ScoreCache:
    """Run-scoped, thread-safe memo keyed by (entity, year, caption, day, variant).

    Each key is computed at most once per run, so every lookup within a run
    sees the same jitter draw.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._values = {}
        self._key_locks = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key, compute):
        with self._lock:
            if key in self._values:
                self.hits += 1
                return self._values[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                if key in self._values:
                    self.hits += 1
                    return self._values[key]
            value = compute()
            with self._lock:
                self._values[key] = value
                self.misses += 1
            return value

    def clear(self):
        with self._lock:
            self._values.clear()
            self._key_locks.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self):
        with self._lock:
            return len(self._values)


class RegressionEngine:
    """Derives caption scores for lineup entities on a scored day.

    Jitter is drawn from a generator seeded by the engine seed and the lookup
    key, so a key gets the same value no matter which worker thread asks first.
    """

    def __init__(self, index, rng=None, cache=None):
        self.index = index
        rng = rng if rng is not None else np.random.default_rng()
        self.seed = int(rng.integers(0, 2**63 - 1))
        self.cache = cache if cache is not None else ScoreCache()
        self._warned = set()
        self._warn_lock = threading.Lock()

    def reset(self, index=None):
        """Start a new run: clear the cache and optionally swap the archive"""
        if index is not None:
            self.index = index
        self.cache.clear()
        with self._warn_lock:
            self._warned.clear()

    def score(self, entity, source_year, caption, day):
        """Score for an entity/caption on a day of its own source year"""
        key = (entity, str(source_year), caption, day, HISTORICAL)
        return self.cache.get_or_compute(
            key, lambda: self._historical_score(key, entity, source_year, caption, day)
        )

    def live_score(self, entity, source_year, caption, day, current_year):
        """
        Live-season score. Uses this year's recorded score for the day, or this
        year's trend once enough scores exist, otherwise the lineup's source year.
        """
        key = (entity, str(source_year), caption, day, LIVE)
        return self.cache.get_or_compute(
            key,
            lambda: self._live_score(key, entity, source_year, caption, day, current_year),
        )

    def _historical_score(self, key, entity, source_year, caption, day):
        exact = self.index.exact_score(entity, source_year, caption, day)
        if exact is not None:
            return exact

        observations = self.index.observations(entity, source_year, caption)
        if len(observations) >= 2:
            return self._predict(key, observations, day)
        if len(observations) == 1:
            return observations[0][1]

        self._warn_missing(entity, source_year, caption)
        return 0.0

    def _live_score(self, key, entity, source_year, caption, day, current_year):
        if current_year is not None:
            exact = self.index.exact_score(entity, current_year, caption, day)
            if exact is not None:
                return exact
            current = self.index.observations(entity, current_year, caption)
            if len(current) >= LIVE_MIN_OBSERVATIONS:
                return self._predict(key, current, day)
        return self.score(entity, source_year, caption, day)

    def _predict(self, key, observations, day):
        predicted = predict_log_linear(observations, day)
        jitter = float(self.jitter_rng(key).uniform(-JITTER, JITTER))
        return round(max(0.0, min(MAX_CAPTION_SCORE, predicted + jitter)), 3)

    def jitter_rng(self, key):
        key_hash = zlib.crc32("|".join(str(part) for part in key).encode("utf-8"))
        return np.random.default_rng([self.seed, key_hash])

    def _warn_missing(self, entity, source_year, caption):
        # Stale lineups pointing at years with no archive are expected; stay quiet
        if not self.index.has_year(source_year):
            return
        key = (entity, str(source_year), caption)
        with self._warn_lock:
            if key in self._warned:
                return
            self._warned.add(key)
        logger.warning(
            f"No historical scores found for {entity} ({source_year}), "
            f"caption {caption}. Returning 0."
        )


def caption_statistics(index, entity, source_year):
    """Average/max/min/count of every recorded score per caption"""
    stats = {}
    for caption in CAPTIONS:
        scores = index.all_scores(entity, source_year, caption)
        if scores:
            stats[caption] = {
                "avg": round(sum(scores) / len(scores), 3),
                "max": max(scores),
                "min": min(scores),
                "count": len(scores),
            }
        else:
            stats[caption] = {"avg": 0, "max": 0, "min": 0, "count": 0}
    return stats

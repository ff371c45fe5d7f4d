"""
Caption scoring rules for the fantasy corps circuit

Captions, caption groups and the show score formula shared by the daily
processor and the read API.
"""

from dataclasses import dataclass

GE_CAPTIONS = ("GE1", "GE2")
VISUAL_CAPTIONS = ("VP", "VA", "CG")
MUSIC_CAPTIONS = ("B", "MA", "P")
CAPTIONS = GE_CAPTIONS + VISUAL_CAPTIONS + MUSIC_CAPTIONS

MAX_CAPTION_SCORE = 20.0
MAX_SHOW_SCORE = 100.0


@dataclass(frozen=True)
class LineupEntry:
    entity_name: str
    point_cost: int
    source_year: str


@dataclass(frozen=True)
class ShowScore:
    ge_score: float
    visual_score: float
    music_score: float
    total_score: float


def parse_lineup_slot(value):
    """
    Parse a lineup slot value of the form "entityName|pointCost|sourceYear".

    Returns None for empty or malformed slots.
    """
    if not value:
        return None
    parts = value.split("|")
    if len(parts) != 3:
        return None
    entity_name, point_cost, source_year = parts
    try:
        cost = int(point_cost)
    except ValueError:
        cost = 0
    return LineupEntry(entity_name.strip(), cost, source_year.strip())


def parse_caption_score(value):
    """
    Coerce a scraped caption value to a float in [0, 20].

    Returns None for missing, non-numeric or out of range values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score or not 0.0 <= score <= MAX_CAPTION_SCORE:
        return None
    return score


def clean_captions(captions):
    """Numeric captions only, keyed by caption name"""
    cleaned = {}
    for caption, value in (captions or {}).items():
        score = parse_caption_score(value)
        if score is not None:
            cleaned[caption] = score
    return cleaned


def cap_caption_score(raw_score, bonus=0.0):
    """Add a synergy bonus and clamp a caption score to [0, 20]."""
    return max(0.0, min(MAX_CAPTION_SCORE, raw_score + bonus))


def calculate_show_score(caption_scores):
    """
    Aggregate caption scores into caption groups.

    General Effect is summed, Visual and Music are summed and halved, and the
    total is capped at 100.

    Args:
        caption_scores: mapping of caption code to its (already capped) score
    """
    ge_score = sum(caption_scores.get(c, 0.0) for c in GE_CAPTIONS)
    visual_score = sum(caption_scores.get(c, 0.0) for c in VISUAL_CAPTIONS) / 2
    music_score = sum(caption_scores.get(c, 0.0) for c in MUSIC_CAPTIONS) / 2
    total = min(MAX_SHOW_SCORE, ge_score + visual_score + music_score)
    return ShowScore(
        ge_score=round(ge_score, 3),
        visual_score=round(visual_score, 3),
        music_score=round(music_score, 3),
        total_score=round(total, 3),
    )


def week_for_day(day):
    """Season week (1-7) containing a scored day"""
    return (day + 6) // 7

"""
Show concept synergy

A corps declares a show concept (theme, music source, drill style). Each
concept option carries style tags; each lineup entity has tags of its own.
The bonus for a caption is the share of show tags the entity matches, worth up
to one point before the caption cap.
"""

from dataclasses import dataclass, field

from fantasy_corps.utils.scoring import parse_lineup_slot

SHOW_THEMES = {
    "classical": ["classical", "traditional", "elegant"],
    "jazz": ["jazz", "improvisational", "energetic"],
    "rock": ["modern", "bold", "energetic"],
    "latin": ["cultural", "rhythmic", "vibrant"],
    "cinematic": ["emotional", "dramatic", "storytelling"],
    "abstract": ["innovative", "artistic", "experimental"],
    "patriotic": ["traditional", "powerful", "emotional"],
    "electronic": ["modern", "innovative", "bold"],
    "broadway": ["theatrical", "storytelling", "dramatic"],
}

MUSIC_SOURCES = {
    "original": ["innovative", "unique", "artistic"],
    "arranged": ["traditional", "classical", "elegant"],
    "popular": ["modern", "accessible", "energetic"],
    "film": ["cinematic", "emotional", "dramatic"],
    "mixed": ["diverse", "innovative", "bold"],
}

DRILL_STYLES = {
    "traditional": ["traditional", "precise", "elegant"],
    "asymmetrical": ["modern", "innovative", "artistic"],
    "curvilinear": ["fluid", "elegant", "artistic"],
    "angular": ["bold", "precise", "dramatic"],
    "scatter": ["innovative", "dynamic", "experimental"],
    "dance": ["theatrical", "energetic", "vibrant"],
}

MODERN_CORPS = ["Blue Devils", "Carolina Crown", "Bluecoats", "Santa Clara Vanguard"]
TRADITIONAL_CORPS = ["Cavaliers", "Blue Knights", "Madison Scouts"]
ARTISTIC_CORPS = ["Santa Clara Vanguard", "Phantom Regiment", "Blue Devils"]

MAX_CAPTION_BONUS = 1.0


def _unique(tags):
    return list(dict.fromkeys(tags))


def get_show_concept_tags(show_concept):
    """Unique tags of a show concept, in theme/music/drill order"""
    if not isinstance(show_concept, dict):
        return []

    tags = []
    tags.extend(SHOW_THEMES.get(show_concept.get("theme"), []))
    tags.extend(MUSIC_SOURCES.get(show_concept.get("musicSource"), []))
    tags.extend(DRILL_STYLES.get(show_concept.get("drillStyle"), []))
    return _unique(tags)


def get_default_entity_tags(entity_name, source_year):
    """Baseline tags from an entity's era and a few well known styles"""
    try:
        year = int(source_year)
    except (TypeError, ValueError):
        year = 0

    if year < 2000:
        tags = ["traditional", "classical"]
    elif year < 2010:
        tags = ["modern", "innovative"]
    else:
        tags = ["modern", "innovative", "artistic"]

    name = entity_name or ""
    if any(corps in name for corps in MODERN_CORPS):
        tags += ["bold", "energetic"]
    if any(corps in name for corps in TRADITIONAL_CORPS):
        tags += ["precise", "powerful"]
    if any(corps in name for corps in ARTISTIC_CORPS):
        tags += ["artistic", "dramatic"]

    return _unique(tags)


@dataclass(frozen=True)
class SynergyResult:
    total_bonus: float = 0.0
    per_caption: dict = field(default_factory=dict)

    def bonus_for(self, caption):
        return self.per_caption.get(caption, 0.0)


NO_SYNERGY = SynergyResult()


class SynergyCalculator:
    """Matches show concept tags against lineup entity tags.

    ``entity_tags`` optionally overrides the default tags, keyed by
    ``"entityName|sourceYear"``.
    """

    def __init__(self, entity_tags=None):
        self.entity_tags = entity_tags or {}

    def tags_for(self, entity_name, source_year):
        override = self.entity_tags.get(f"{entity_name}|{source_year}")
        if override:
            return list(override)
        return get_default_entity_tags(entity_name, source_year)

    def caption_bonus(self, show_tags, entity_name, source_year):
        if not show_tags:
            return 0.0
        entity_tags = self.tags_for(entity_name, source_year)
        if not entity_tags:
            return 0.0
        matches = sum(1 for tag in show_tags if tag in entity_tags)
        return round(MAX_CAPTION_BONUS * matches / len(show_tags), 3)

    def compute(self, show_concept, lineup):
        show_tags = get_show_concept_tags(show_concept)
        if not show_tags:
            return NO_SYNERGY

        per_caption = {}
        for caption, value in (lineup or {}).items():
            entry = parse_lineup_slot(value)
            if entry is None:
                continue
            per_caption[caption] = self.caption_bonus(
                show_tags, entry.entity_name, entry.source_year
            )

        return SynergyResult(
            total_bonus=round(sum(per_caption.values()), 3), per_caption=per_caption
        )

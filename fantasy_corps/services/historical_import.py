"""
Historical score archive import

Events arrive from an external scraper as JSON payloads:

    {"eventName": "...", "eventDate": "2014-07-19", "eventLocation": "...",
     "year": 2014, "scores": [{"corps": "Blue Devils", "captions": {"GE1": 18.1, ...}}]}

The archive is append/merge only. An event already on file (same year, name
and date) gains new corps rows and any caption that was missing or zero;
recorded scores are never overwritten.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from fantasy_corps import db
from fantasy_corps.errors import PersistenceError
from fantasy_corps.models import HistoricalEvent, HistoricalScore
from fantasy_corps.utils.scoring import clean_captions
from fantasy_corps.utils.timezone_utils import day_index_for_date

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    event_name: str
    source_year: str = None
    day_index: int = None
    created: bool = False
    corps_added: int = 0
    captions_filled: int = 0
    skipped: bool = False
    reason: str = None

    @property
    def changed(self):
        return self.created or self.corps_added > 0 or self.captions_filled > 0

    def to_dict(self):
        return asdict(self)


def parse_event_date(value):
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%B %d, %Y", "%b %d, %Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def merge_captions(existing, incoming):
    """Fill captions that are missing or zero. Returns (merged, filled_count)."""
    merged = clean_captions(existing)
    filled = 0
    for caption, value in clean_captions(incoming).items():
        if value <= 0:
            continue
        if not merged.get(caption):
            merged[caption] = value
            filled += 1
    return merged, filled


def import_historical_event(payload):
    """Upsert-merge one scraped event into the archive"""
    event_name = payload.get("eventName")
    scores = payload.get("scores") or []
    year = payload.get("year")

    if not event_name or not scores or not year:
        logger.warning(f"Payload was missing event name, scores or year: {event_name} ({year})")
        return ImportResult(
            event_name=event_name,
            skipped=True,
            reason="Payload was missing event name, scores or year",
        )

    source_year = str(year)
    event_date = parse_event_date(payload.get("eventDate"))
    day_index = day_index_for_date(event_date, int(source_year))
    result = ImportResult(event_name=event_name, source_year=source_year, day_index=day_index)

    try:
        event = HistoricalEvent.query.filter_by(
            source_year=source_year, event_name=event_name, event_date=event_date
        ).first()

        if event is None:
            event = HistoricalEvent(
                source_year=source_year,
                event_name=event_name,
                event_date=event_date,
                location=payload.get("eventLocation") or payload.get("location"),
                day_index=day_index,
            )
            db.session.add(event)
            for row in scores:
                event.scores.append(
                    HistoricalScore(
                        entity_name=row["corps"], captions=clean_captions(row.get("captions"))
                    )
                )
            result.created = True
            result.corps_added = len(scores)
            logger.info(
                f"Appending new event {event_name} ({source_year}, day {day_index})"
            )
        else:
            existing = {score.entity_name: score for score in event.scores}
            for row in scores:
                current = existing.get(row["corps"])
                if current is None:
                    new_score = HistoricalScore(
                        entity_name=row["corps"], captions=clean_captions(row.get("captions"))
                    )
                    event.scores.append(new_score)
                    existing[row["corps"]] = new_score
                    result.corps_added += 1
                    logger.info(f"Adding missing corps entry for {row['corps']}")
                    continue

                merged, filled = merge_captions(current.captions, row.get("captions"))
                if filled:
                    # Reassign so SQLAlchemy picks up the JSON change
                    current.captions = merged
                    result.captions_filled += filled
                    logger.info(f"Updated {filled} captions for {row['corps']}")

            if not result.changed:
                logger.info(f"No new scores to merge for event {event_name}. Skipping.")

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error archiving historical scores for {event_name}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to import {event_name} ({source_year})") from e

    return result


def import_historical_events(payloads):
    return [import_historical_event(payload) for payload in payloads]

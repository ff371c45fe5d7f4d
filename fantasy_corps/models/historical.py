"""Historical score archive - scraped recaps keyed by source year"""

from datetime import datetime, timezone

from fantasy_corps import db


class HistoricalEvent(db.Model):
    __tablename__ = "historical_events"

    id = db.Column(db.Integer, primary_key=True)
    source_year = db.Column(db.String(4), nullable=False)
    event_name = db.Column(db.String(200), nullable=False)
    event_date = db.Column(db.Date)
    location = db.Column(db.String(200))
    # Null for pre-season events outside the 49 day window
    day_index = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    scores = db.relationship(
        "HistoricalScore",
        backref="event",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="HistoricalScore.id",
    )

    __table_args__ = (
        db.UniqueConstraint(
            "source_year", "event_name", "event_date", name="unique_historical_event"
        ),
        db.Index("idx_historical_year", "source_year"),
        db.Index("idx_historical_year_day", "source_year", "day_index"),
    )

    def __repr__(self):
        return f"<HistoricalEvent {self.source_year} day={self.day_index} {self.event_name}>"

    def to_dict(self):
        return {
            "sourceYear": self.source_year,
            "eventName": self.event_name,
            "date": self.event_date.isoformat() if self.event_date else None,
            "location": self.location,
            "dayIndex": self.day_index,
            "scores": [score.to_dict() for score in self.scores],
        }


class HistoricalScore(db.Model):
    __tablename__ = "historical_scores"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("historical_events.id"), nullable=False
    )
    entity_name = db.Column(db.String(120), nullable=False)
    # {"GE1": 18.2, "GE2": 17.9, ...}
    captions = db.Column(db.JSON, nullable=False, default=dict)

    __table_args__ = (db.Index("idx_historical_score_entity", "entity_name"),)

    def __repr__(self):
        return f"<HistoricalScore {self.entity_name}>"

    def to_dict(self):
        return {"corps": self.entity_name, "captions": dict(self.captions or {})}

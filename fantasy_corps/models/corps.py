from datetime import datetime, timezone

from fantasy_corps import db

WORLD_CLASS = "worldClass"
OPEN_CLASS = "openClass"
A_CLASS = "aClass"
SOUNDSPORT = "soundSport"

CORPS_CLASSES = [WORLD_CLASS, OPEN_CLASS, A_CLASS, SOUNDSPORT]


class Corps(db.Model):
    __tablename__ = "corps"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    corps_class = db.Column(db.String(20), nullable=False)
    corps_name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(120))

    # {"GE1": "Blue Devils|20|2014", ...}
    lineup = db.Column(db.JSON)
    # {"week1": [{"eventName": "..."}], ...}
    selected_shows = db.Column(db.JSON, default=dict)
    # {"theme": "jazz", "musicSource": "original", "drillStyle": "scatter"}
    show_concept = db.Column(db.JSON)

    # Most recent daily total, overwritten on every scored day
    total_season_score = db.Column(db.Float, default=0.0)
    last_scored_day = db.Column(db.Integer)

    is_retired = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    season = db.relationship("Season", foreign_keys=[season_id])

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "season_id", "corps_class", name="unique_user_season_class"
        ),
        db.Index("idx_corps_season", "season_id", "is_retired"),
    )

    def __repr__(self):
        return f"<Corps {self.corps_name} ({self.corps_class})>"

    def select_show(self, week, event_name, **details):
        """Register attendance at a show for a week"""
        shows = dict(self.selected_shows or {})
        week_key = f"week{week}"
        week_shows = list(shows.get(week_key, []))
        if not any(s.get("eventName") == event_name for s in week_shows):
            week_shows.append({"eventName": event_name, **details})
        shows[week_key] = week_shows
        # Reassign so SQLAlchemy picks up the JSON change
        self.selected_shows = shows

    def to_dict(self):
        return {
            "id": self.id,
            "corps_class": self.corps_class,
            "corps_name": self.corps_name,
            "lineup": self.lineup,
            "show_concept": self.show_concept,
            "total_season_score": self.total_season_score,
            "last_scored_day": self.last_scored_day,
        }

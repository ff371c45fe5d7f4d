from datetime import datetime, timezone

from fantasy_corps import db


class DailyRecap(db.Model):
    """Archived results of one scored day. One row per (season, day)."""

    __tablename__ = "daily_recaps"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    day = db.Column(db.Integer, nullable=False)
    recap_date = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    # [{"eventName", "location", "results": [{"uid", "corpsClass", ...}]}]
    shows = db.Column(db.JSON, nullable=False, default=list)

    season = db.relationship(
        "Season", backref=db.backref("recaps", lazy="dynamic", cascade="all, delete-orphan")
    )

    __table_args__ = (
        db.UniqueConstraint("season_id", "day", name="unique_recap_day"),
        db.Index("idx_recap_season", "season_id"),
    )

    def __repr__(self):
        return f"<DailyRecap season={self.season_id} day={self.day}>"

    @staticmethod
    def get_for_season(season_id):
        return (
            DailyRecap.query.filter_by(season_id=season_id)
            .order_by(DailyRecap.day)
            .all()
        )

    def to_dict(self):
        return {
            "day": self.day,
            "date": self.recap_date.isoformat() if self.recap_date else None,
            "shows": self.shows or [],
        }

from datetime import date, datetime, timezone

from fantasy_corps import db

SEASON_LENGTH = 49
# Live seasons open with three weeks of setup before day 1 is scored
SPRING_TRAINING_DAYS = 21

OFF_SEASON = "off-season"
LIVE_SEASON = "live-season"


class Season(db.Model):
    __tablename__ = "seasons"

    id = db.Column(db.Integer, primary_key=True)
    season_uid = db.Column(db.String(50), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)  # e.g., "finale_2025-26"

    # 'off-season' or 'live-season'
    status = db.Column(db.String(20), nullable=False, default=OFF_SEASON)
    schedule_start_date = db.Column(db.Date, nullable=False)
    # Identifies the corps value set the season was drafted from
    data_set_id = db.Column(db.String(50))
    # Calendar year whose scores arrive during a live season
    season_year = db.Column(db.Integer)

    is_active = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    shows = db.relationship(
        "ScheduledShow", backref="season", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.Index("idx_season_active", "is_active"),)

    def __repr__(self):
        return f"<Season {self.season_uid}>"

    @staticmethod
    def get_current_season():
        """Get the currently active season"""
        return Season.query.filter_by(is_active=True).first()

    @staticmethod
    def create_season(season_uid, start_date, status=OFF_SEASON, name=None, **kwargs):
        """Create a new season"""
        season = Season(
            season_uid=season_uid,
            name=name or season_uid,
            status=status,
            schedule_start_date=start_date,
            **kwargs,
        )
        db.session.add(season)
        return season

    def activate(self):
        """Activate this season (deactivates all others)"""
        Season.query.update({"is_active": False})
        self.is_active = True
        db.session.commit()

    @property
    def is_live(self):
        return self.status == LIVE_SEASON

    def add_show(self, day, event_name, location=None, event_date=None):
        """Schedule a show on a season day"""
        show = ScheduledShow(
            season_id=self.id,
            day=day,
            event_name=event_name,
            location=location,
            event_date=event_date,
        )
        db.session.add(show)
        return show

    def scored_day_for(self, on_date):
        """Map a calendar date to the season's scored day.

        Live seasons skip the spring training window, so their scored day can be
        zero or negative before competition begins.
        """
        if isinstance(on_date, datetime):
            on_date = on_date.date()
        calendar_day = (on_date - self.schedule_start_date).days + 1
        if self.is_live:
            return calendar_day - SPRING_TRAINING_DAYS
        return calendar_day

    def to_dict(self):
        """Convert season to dictionary for API responses"""
        return {
            "id": self.id,
            "season_uid": self.season_uid,
            "name": self.name,
            "status": self.status,
            "is_active": self.is_active,
            "schedule_start_date": (
                self.schedule_start_date.isoformat()
                if self.schedule_start_date
                else None
            ),
            "data_set_id": self.data_set_id,
            "season_year": self.season_year,
        }


class ScheduledShow(db.Model):
    __tablename__ = "scheduled_shows"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    day = db.Column(db.Integer, nullable=False)
    event_name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(200))
    event_date = db.Column(db.Date)

    __table_args__ = (
        db.UniqueConstraint("season_id", "day", "event_name", name="unique_show_day"),
        db.Index("idx_show_season_day", "season_id", "day"),
    )

    def __repr__(self):
        return f"<ScheduledShow day={self.day} {self.event_name}>"

    def to_dict(self):
        return {
            "day": self.day,
            "eventName": self.event_name,
            "location": self.location,
            "date": self.event_date.isoformat() if isinstance(self.event_date, date) else None,
        }

"""Trophy Model - regional trophies, championship trophies and finalist medals"""

from datetime import datetime, timezone

from fantasy_corps import db

REGIONAL = "regional"
CHAMPIONSHIP = "championship"
FINALIST = "finalist"

METALS = ["gold", "silver", "bronze"]


class Trophy(db.Model):
    """An award in a participant's trophy case"""

    __tablename__ = "trophies"

    id = db.Column(db.Integer, primary_key=True)

    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    # Scored day the award was earned on
    day = db.Column(db.Integer, nullable=False)

    trophy_type = db.Column(
        db.String(20), nullable=False
    )  # 'regional', 'championship', 'finalist'
    metal = db.Column(db.String(10))  # None for finalist medals
    event_name = db.Column(db.String(200))
    corps_class = db.Column(db.String(20))
    score = db.Column(db.Float)
    rank = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    season = db.relationship("Season", backref=db.backref("trophies", lazy="dynamic"))

    __table_args__ = (
        db.Index("idx_trophy_season_day", "season_id", "day"),
        db.Index("idx_trophy_user", "user_id"),
    )

    def __repr__(self):
        return f"<Trophy {self.trophy_type} {self.metal or ''} rank={self.rank} user={self.user_id}>"

    @staticmethod
    def get_awards_for_day(season_id, day):
        return (
            Trophy.query.filter_by(season_id=season_id, day=day)
            .order_by(Trophy.event_name, Trophy.trophy_type, Trophy.rank)
            .all()
        )

    def to_dict(self):
        return {
            "type": self.trophy_type,
            "metal": self.metal,
            "eventName": self.event_name,
            "corpsClass": self.corps_class,
            "score": self.score,
            "rank": self.rank,
            "day": self.day,
            "seasonName": self.season.name if self.season else None,
        }

from datetime import datetime, timezone

from fantasy_corps import db


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    # Leagues without a season play every season
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )
    matchups = db.relationship(
        "LeagueMatchup", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )
    creator = db.relationship("User", foreign_keys=[creator_id])

    __table_args__ = (
        db.Index("idx_league_active", "is_active"),
        db.Index("idx_league_season", "season_id"),
    )

    def __repr__(self):
        return f"<League {self.name}>"

    @staticmethod
    def for_season(season_id):
        """Active leagues playing a season, oldest first"""
        return (
            League.query.filter(
                League.is_active.is_(True),
                (League.season_id == season_id) | (League.season_id.is_(None)),
            )
            .order_by(League.id)
            .all()
        )

    def add_member(self, user):
        """Add a user to the league, reactivating a past membership"""
        from .league_member import LeagueMember

        existing = self.members.filter_by(user_id=user.id).first()
        if existing:
            if existing.is_active:
                return False
            existing.reactivate()
            return True

        db.session.add(LeagueMember(user_id=user.id, league_id=self.id))
        return True

    def get_matchups(self, season_id, week):
        """A week's matchups, grouped by class"""
        return (
            self.matchups.filter_by(season_id=season_id, week=week)
            .order_by(LeagueMatchup.corps_class, LeagueMatchup.id)
            .all()
        )


class LeagueMatchup(db.Model):
    """A weekly head-to-head pairing for one corps class.

    A null ``participant_b_id`` is a bye, won outright by participant A.
    """

    __tablename__ = "league_matchups"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)
    corps_class = db.Column(db.String(20), nullable=False)

    participant_a_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    participant_b_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    winner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    is_tie = db.Column(db.Boolean, default=False)
    completed = db.Column(db.Boolean, default=False)
    # {"<uid>": score}
    scores = db.Column(db.JSON)
    resolved_at = db.Column(db.DateTime)

    participant_a = db.relationship("User", foreign_keys=[participant_a_id])
    participant_b = db.relationship("User", foreign_keys=[participant_b_id])
    winner = db.relationship("User", foreign_keys=[winner_id])

    __table_args__ = (
        db.Index("idx_matchup_league_week", "league_id", "season_id", "week"),
    )

    def __repr__(self):
        return (
            f"<LeagueMatchup week={self.week} {self.corps_class} "
            f"{self.participant_a_id} vs {self.participant_b_id}>"
        )

    @property
    def is_bye(self):
        return self.participant_b_id is None

    @property
    def is_resolved(self):
        return self.winner_id is not None or self.completed


class SeasonRecord(db.Model):
    """Head-to-head win/loss/tie record for one class in one season"""

    __tablename__ = "season_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    corps_class = db.Column(db.String(20), nullable=False)

    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    ties = db.Column(db.Integer, default=0, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "season_id", "corps_class", name="unique_season_record"
        ),
    )

    def __repr__(self):
        return f"<SeasonRecord user={self.user_id} {self.corps_class} {self.wins}-{self.losses}-{self.ties}>"

    @staticmethod
    def get_or_create(user_id, season_id, corps_class):
        record = SeasonRecord.query.filter_by(
            user_id=user_id, season_id=season_id, corps_class=corps_class
        ).first()
        if record is None:
            record = SeasonRecord(
                user_id=user_id,
                season_id=season_id,
                corps_class=corps_class,
                wins=0,
                losses=0,
                ties=0,
            )
            db.session.add(record)
        return record

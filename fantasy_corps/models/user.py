from datetime import datetime, timezone

from fantasy_corps import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    # External participant id, also the deterministic sort key for regional splits
    uid = db.Column(db.String(64), unique=True, nullable=False, index=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100))

    # Account status
    is_active = db.Column(db.Boolean, default=True)

    # CorpsCoin balance
    corps_coin = db.Column(db.Integer, default=0, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    corps = db.relationship(
        "Corps", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    trophies = db.relationship(
        "Trophy", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    coin_awards = db.relationship(
        "CoinAward", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.Index("idx_user_active_status", "is_active"),)

    def __repr__(self):
        return f"<User {self.username}>"

    @staticmethod
    def get_by_uid(uid):
        return User.query.filter_by(uid=uid).first()

    def get_trophy_case(self, season_id=None):
        """Get awarded trophies, newest season first"""
        from .trophy import Trophy

        query = self.trophies
        if season_id is not None:
            query = query.filter_by(season_id=season_id)
        return query.order_by(Trophy.season_id.desc(), Trophy.day, Trophy.rank).all()

    def get_season_record(self, season_id, corps_class):
        """Get the head-to-head record for one class"""
        from .league import SeasonRecord

        return SeasonRecord.query.filter_by(
            user_id=self.id, season_id=season_id, corps_class=corps_class
        ).first()

    def to_dict(self):
        return {
            "id": self.id,
            "uid": self.uid,
            "username": self.username,
            "display_name": self.display_name or self.username,
            "corps_coin": self.corps_coin,
        }

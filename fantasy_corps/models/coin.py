from datetime import datetime, timezone

from fantasy_corps import db


class CoinAward(db.Model):
    """CorpsCoin earned on one scored day, combined across all shows attended"""

    __tablename__ = "coin_awards"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    day = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Integer, nullable=False, default=0)
    # [{"eventName", "corpsClass", "amount"}]
    history = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "season_id", "day", name="unique_coin_award_day"),
        db.Index("idx_coin_award_season_day", "season_id", "day"),
    )

    def __repr__(self):
        return f"<CoinAward user={self.user_id} day={self.day} amount={self.amount}>"

    def to_dict(self):
        return {
            "day": self.day,
            "amount": self.amount,
            "history": self.history or [],
        }

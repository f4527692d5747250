from datetime import datetime, timezone

from groupscore import db


class GroupPrediction(db.Model):
    __tablename__ = "group_predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False)
    group_fixture_id = db.Column(
        db.Integer, db.ForeignKey("group_fixtures.id"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Guessed score, "home:away"
    prediction = db.Column(db.String(20), nullable=False)

    # Results (written once, at settlement)
    settled_at = db.Column(db.DateTime)
    points = db.Column(db.Integer, nullable=False, default=0)
    exact_hit = db.Column(db.Boolean, nullable=False, default=False)
    difference_hit = db.Column(db.Boolean, nullable=False, default=False)
    any_hit = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint(
            "group_fixture_id", "user_id", name="unique_user_group_fixture_prediction"
        ),
        db.Index("idx_prediction_group_user", "group_id", "user_id"),
        db.Index("idx_prediction_unsettled", "group_fixture_id", "settled_at"),
    )

    def __repr__(self):
        return f"<GroupPrediction user_id={self.user_id} group_fixture_id={self.group_fixture_id} {self.prediction}>"

    @property
    def is_settled(self):
        return self.settled_at is not None
